from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.core.config import settings
from factory_inventory.db.models.batch import Batch
from factory_inventory.db.models.batch_material import BatchMaterial
from factory_inventory.db.models.material import Material
from factory_inventory.db.models.usage_log import UsageLog
from factory_inventory.services.errors import LedgerUnavailable, MaterialNotFound

logger = logging.getLogger("ledger")

PURCHASE = "Purchase"
CONSUMPTION = "Consumption"
STARTING_BALANCE_ID = "starting-balance"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes (as returned by SQLite) are taken to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _q(v: float) -> float:
    # keep float drift out of displayed balances
    return round(float(v), 6)


@dataclass
class MaterialTransaction:
    id: str
    date: datetime
    category: str
    reference: str
    inflow: float | None
    outflow: float | None
    stock: float = 0.0
    notes: str | None = None
    bill_number: str | None = None
    formatted_date: str | None = None


@dataclass(frozen=True)
class UsageEntry:
    id: int
    quantity: float
    date: datetime
    username: str
    notes: str | None = None
    bill_number: str | None = None
    batch_number: str | None = None


@dataclass(frozen=True)
class AllocationEntry:
    id: int
    quantity: float
    created_at: datetime
    batch_date: datetime | None = None
    batch_number: str | None = None
    product: str | None = None


def is_direct_addition(quantity: float, username: str, system_actor: str) -> bool:
    return quantity < 0 and username == system_actor


def classify_usage(row: UsageEntry, *, system_actor: str) -> MaterialTransaction:
    if is_direct_addition(row.quantity, row.username, system_actor):
        return MaterialTransaction(
            id=f"addition-{row.id}",
            date=as_utc(row.date),
            category=PURCHASE,
            reference=f"Bill #{row.bill_number}" if row.bill_number else "Direct Addition",
            inflow=abs(float(row.quantity)),
            outflow=None,
            notes=row.notes or None,
            bill_number=row.bill_number or None,
        )
    return MaterialTransaction(
        id=f"consumption-{row.id}",
        date=as_utc(row.date),
        category=CONSUMPTION,
        reference=f"B-{row.batch_number}" if row.batch_number else "-",
        inflow=None,
        outflow=float(row.quantity),
        notes=row.notes or None,
        bill_number=row.bill_number or None,
    )


def classify_allocation(row: AllocationEntry) -> MaterialTransaction:
    return MaterialTransaction(
        id=f"purchase-{row.id}",
        date=as_utc(row.batch_date or row.created_at),
        category=PURCHASE,
        reference=f"INV{row.batch_number[-3:]}" if row.batch_number else "-",
        inflow=float(row.quantity),
        outflow=None,
        notes=f"Added for batch {row.batch_number or 'Unknown'}",
    )


def filter_by_date(
    txs: list[MaterialTransaction],
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[MaterialTransaction]:
    """Keep transactions dated within [date_from, date_to]; both bounds inclusive."""
    lo = as_utc(date_from) if date_from is not None else None
    hi = as_utc(date_to) if date_to is not None else None
    return [t for t in txs if (lo is None or t.date >= lo) and (hi is None or t.date <= hi)]


def apply_running_balance(txs: list[MaterialTransaction], current_stock: float) -> float:
    """
    Annotate newest-first transactions with the balance right after each one.

    Walks from the newest transaction back in time, starting at current_stock:
    each row receives the running value, then the running value is unwound
    to what it was before that row. Returns the balance before the oldest row.
    """
    running = float(current_stock)
    for t in txs:
        t.stock = _q(running)
        if t.category == PURCHASE and t.inflow:
            running -= float(t.inflow)
        elif t.category == CONSUMPTION and t.outflow:
            running += float(t.outflow)
    return _q(running)


def starting_balance_entry(txs: list[MaterialTransaction]) -> MaterialTransaction | None:
    """Synthetic opening row dated one day before the oldest listed transaction."""
    if not txs:
        return None
    oldest = txs[-1]
    opening = _q(oldest.stock - (oldest.inflow or 0) + (oldest.outflow or 0))
    if opening <= 0:
        return None
    return MaterialTransaction(
        id=STARTING_BALANCE_ID,
        date=oldest.date - timedelta(days=1),
        category=PURCHASE,
        reference="-",
        inflow=None,
        outflow=None,
        stock=opening,
        notes="Starting balance",
    )


def format_date(dt: datetime) -> str:
    # en-GB short form, e.g. "05 Mar 24"
    return f"{dt.day:02d} {dt.strftime('%b')} {dt.strftime('%y')}"


def reconstruct_ledger(
    usage: list[UsageEntry],
    allocations: list[AllocationEntry],
    *,
    current_stock: float,
    system_actor: str,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[MaterialTransaction]:
    """
    Build the balance-annotated transaction list for one material, newest first.

    Balances are computed over the full history so that a date window shows
    the balances that really held at the time; the window is applied after.
    """
    txs = [classify_usage(u, system_actor=system_actor) for u in usage]
    txs.extend(classify_allocation(a) for a in allocations)
    txs.sort(key=lambda t: t.date, reverse=True)

    apply_running_balance(txs, current_stock)
    txs = filter_by_date(txs, date_from=date_from, date_to=date_to)

    opening = starting_balance_entry(txs)
    if opening is not None:
        txs.append(opening)

    for t in txs:
        t.formatted_date = format_date(t.date)
    return txs


async def _load_usage(db: AsyncSession, material_id: int) -> list[UsageEntry]:
    rows = (
        await db.execute(
            select(UsageLog, Batch.batch_number)
            .outerjoin(Batch, Batch.id == UsageLog.batch_id)
            .where(UsageLog.material_id == material_id)
            .order_by(UsageLog.date.asc(), UsageLog.id.asc())
        )
    ).all()
    return [
        UsageEntry(
            id=int(u.id),
            quantity=float(u.quantity),
            date=u.date,
            username=u.username,
            notes=u.notes,
            bill_number=u.bill_number,
            batch_number=batch_number,
        )
        for u, batch_number in rows
    ]


async def _load_allocations(db: AsyncSession, material_id: int) -> list[AllocationEntry]:
    rows = (
        await db.execute(
            select(BatchMaterial, Batch.date, Batch.batch_number, Batch.product)
            .join(Batch, Batch.id == BatchMaterial.batch_id)
            .where(BatchMaterial.material_id == material_id)
            .order_by(BatchMaterial.id.asc())
        )
    ).all()
    return [
        AllocationEntry(
            id=int(bm.id),
            quantity=float(bm.quantity),
            created_at=bm.created_at,
            batch_date=batch_date,
            batch_number=batch_number,
            product=product,
        )
        for bm, batch_date, batch_number, product in rows
    ]


async def _read_current_stock(db: AsyncSession, material_id: int) -> float | None:
    # Column select, so the value comes from the database and not the identity map.
    v = await db.scalar(select(Material.current_stock).where(Material.id == material_id))
    return None if v is None else float(v)


async def get_material_history(
    db: AsyncSession,
    material_id: int,
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    system_actor: str | None = None,
) -> list[MaterialTransaction]:
    """
    Reconstruct the stock ledger of one material.

    Raises MaterialNotFound if the material does not exist and LedgerUnavailable
    on any store failure; no partial ledger is ever returned.
    """
    try:
        if await _read_current_stock(db, material_id) is None:
            raise MaterialNotFound(material_id)
        usage = await _load_usage(db, material_id)
        allocations = await _load_allocations(db, material_id)
        # Re-read right before computing so concurrent stock edits are reflected.
        current_stock = await _read_current_stock(db, material_id)
    except SQLAlchemyError as e:
        logger.warning("ledger fetch failed material_id=%s: %s", material_id, e)
        raise LedgerUnavailable(f"could not load history for material {material_id}") from e
    if current_stock is None:
        raise MaterialNotFound(material_id)

    txs = reconstruct_ledger(
        usage,
        allocations,
        current_stock=current_stock,
        system_actor=system_actor or settings.system_actor,
        date_from=date_from,
        date_to=date_to,
    )
    logger.debug(
        "ledger rebuilt material_id=%s usage=%d allocations=%d rows=%d stock=%s",
        material_id,
        len(usage),
        len(allocations),
        len(txs),
        current_stock,
    )
    return txs


async def record_direct_stock_addition(
    db: AsyncSession,
    material_id: int,
    quantity: float,
    *,
    bill_number: str | None = None,
    system_actor: str | None = None,
) -> tuple[Material, UsageLog]:
    """
    Book a direct addition: a negative-quantity usage log by the system actor
    plus the matching increase of current_stock. Flushes; the caller commits.
    """
    if quantity <= 0:
        raise ValueError("quantity must be > 0")
    m = await db.get(Material, material_id)
    if not m:
        raise MaterialNotFound(material_id)

    now = _utcnow()
    log = UsageLog(
        material_id=material_id,
        quantity=-float(quantity),
        date=now,
        username=system_actor or settings.system_actor,
        notes=f"Direct stock addition (Bill #{bill_number})" if bill_number else "Direct stock addition",
        bill_number=bill_number or None,
        created_at=now,
    )
    db.add(log)

    before = float(m.current_stock)
    m.current_stock = before + float(quantity)
    m.last_updated = now
    await db.flush()
    logger.info(
        "direct stock addition material_id=%s before=%s delta=%s after=%s bill=%s",
        material_id,
        before,
        quantity,
        m.current_stock,
        bill_number,
    )
    return m, log
