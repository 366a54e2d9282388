from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.db.models.batch import Batch
from factory_inventory.db.models.material import Material
from factory_inventory.db.models.usage_log import UsageLog
from factory_inventory.services.errors import UsageLogNotFound
from factory_inventory.services.ledger_service import as_utc

logger = logging.getLogger("usage_logs")

_EDITABLE_FIELDS = ("material_id", "quantity", "date", "username", "batch_id", "notes", "bill_number")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _base_query():
    return (
        select(UsageLog, Material.name, Material.category, Material.unit, Batch.batch_number)
        .outerjoin(Material, Material.id == UsageLog.material_id)
        .outerjoin(Batch, Batch.id == UsageLog.batch_id)
    )


def _row_out(u: UsageLog, name: str | None, category: str | None, unit: str | None, batch_number: str | None) -> dict:
    return {
        "id": u.id,
        "material_id": u.material_id,
        "quantity": float(u.quantity),
        "date": u.date,
        "username": u.username,
        "batch_id": u.batch_id,
        "notes": u.notes,
        "bill_number": u.bill_number,
        "created_at": u.created_at,
        "material_name": name,
        "material_category": category,
        "material_unit": unit,
        "batch_number": batch_number,
    }


async def list_usage_logs(
    db: AsyncSession,
    *,
    material_id: int | None = None,
    username: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    batch_id: int | None = None,
) -> list[dict]:
    stmt = _base_query()
    if material_id is not None:
        stmt = stmt.where(UsageLog.material_id == material_id)
    if username:
        stmt = stmt.where(UsageLog.username.ilike(f"%{username}%"))
    if date_from is not None:
        stmt = stmt.where(UsageLog.date >= as_utc(date_from))
    if date_to is not None:
        stmt = stmt.where(UsageLog.date <= as_utc(date_to))
    if batch_id is not None:
        stmt = stmt.where(UsageLog.batch_id == batch_id)
    stmt = stmt.order_by(UsageLog.date.desc(), UsageLog.id.desc())
    return [_row_out(*r) for r in (await db.execute(stmt)).all()]


async def get_usage_log(db: AsyncSession, log_id: int) -> dict:
    row = (await db.execute(_base_query().where(UsageLog.id == log_id))).first()
    if row is None:
        raise UsageLogNotFound(log_id)
    return _row_out(*row)


async def create_usage_log(db: AsyncSession, data: dict[str, Any]) -> UsageLog:
    """Insert a usage row as given. Stock levels are not touched here."""
    now = _utcnow()
    u = UsageLog(
        material_id=data["material_id"],
        quantity=float(data["quantity"]),
        date=as_utc(data["date"]) if data.get("date") else now,
        username=data["username"],
        batch_id=data.get("batch_id"),
        notes=data.get("notes"),
        bill_number=data.get("bill_number"),
        created_at=now,
    )
    db.add(u)
    await db.commit()
    await db.refresh(u)
    logger.info("usage log created id=%s material_id=%s quantity=%s user=%s", u.id, u.material_id, u.quantity, u.username)
    return u


async def update_usage_log(db: AsyncSession, log_id: int, patch: dict[str, Any]) -> UsageLog:
    u = await db.get(UsageLog, log_id)
    if not u:
        raise UsageLogNotFound(log_id)
    for k, v in patch.items():
        if k not in _EDITABLE_FIELDS:
            continue
        if k == "date" and v is not None:
            v = as_utc(v)
        setattr(u, k, v)
    await db.commit()
    await db.refresh(u)
    return u


async def delete_usage_log(db: AsyncSession, log_id: int) -> None:
    u = await db.get(UsageLog, log_id)
    if not u:
        raise UsageLogNotFound(log_id)
    await db.delete(u)
    await db.commit()
    logger.info("usage log deleted id=%s", log_id)
