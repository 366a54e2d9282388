from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.db.models.material import Material
from factory_inventory.db.models.usage_log import UsageLog
from factory_inventory.services.ledger_service import as_utc


def _percent(current: float, threshold: float) -> int:
    if threshold <= 0:
        return 0
    return min(int(round(current / threshold * 100)), 100)


async def stock_levels(db: AsyncSession) -> list[dict]:
    materials = (await db.execute(select(Material).order_by(Material.name.asc()))).scalars().all()
    return [
        {
            "id": m.id,
            "name": m.name,
            "unit": m.unit,
            "current_stock": float(m.current_stock),
            "threshold": float(m.threshold),
            "percent": _percent(float(m.current_stock), float(m.threshold)),
        }
        for m in materials
    ]


async def low_stock_alerts(db: AsyncSession) -> list[dict]:
    """Materials under their threshold, most critical (lowest stock/threshold) first."""
    materials = (
        await db.execute(select(Material).where(Material.current_stock < Material.threshold))
    ).scalars().all()
    out = [
        {
            "id": m.id,
            "name": m.name,
            "unit": m.unit,
            "current_stock": float(m.current_stock),
            "threshold": float(m.threshold),
            "ratio": float(m.current_stock) / float(m.threshold) if m.threshold else 0.0,
        }
        for m in materials
    ]
    out.sort(key=lambda x: (x["ratio"], x["name"]))
    return out


async def top_materials(db: AsyncSession, *, limit: int = 5) -> list[dict]:
    """
    Sum of usage quantity per material name, largest first.

    Quantities are summed as stored, so direct additions (negative rows) offset
    consumption. Rows whose material was deleted are grouped under "Unknown".
    """
    stmt = (
        select(Material.name, func.sum(UsageLog.quantity), func.max(Material.unit))
        .select_from(UsageLog)
        .outerjoin(Material, Material.id == UsageLog.material_id)
        .group_by(Material.name)
    )
    out = [
        {"name": name or "Unknown", "total": float(total or 0), "unit": unit or "units"}
        for name, total, unit in (await db.execute(stmt)).all()
    ]
    out.sort(key=lambda x: x["total"], reverse=True)
    return out[:limit]


def _utc_day(dt: datetime) -> date:
    return as_utc(dt).date()


async def daily_usage(db: AsyncSession, *, days: int = 7) -> list[dict]:
    """Consumption (positive usage rows) per UTC day for the last `days` days, oldest first."""
    today = datetime.now(timezone.utc).date()
    start_date = today - timedelta(days=days - 1)
    start_dt = datetime.combine(start_date, datetime.min.time(), tzinfo=timezone.utc)

    buckets: dict[date, float] = {start_date + timedelta(days=i): 0.0 for i in range(days)}
    rows = (
        await db.execute(
            select(UsageLog.date, UsageLog.quantity).where(UsageLog.date >= start_dt, UsageLog.quantity > 0)
        )
    ).all()
    for at, quantity in rows:
        d = _utc_day(at)
        if d in buckets:
            buckets[d] += float(quantity)

    return [{"day": d.isoformat(), "quantity": float(round(q, 3))} for d, q in sorted(buckets.items())]
