from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.core.config import settings
from factory_inventory.db.models.batch_material import BatchMaterial
from factory_inventory.db.models.material import Material
from factory_inventory.db.models.material_log import MaterialLog
from factory_inventory.db.models.usage_log import UsageLog
from factory_inventory.services import material_log_service
from factory_inventory.services.errors import MaterialInUse, MaterialNotFound, ReferenceCleanupFailed
from factory_inventory.services.ledger_service import record_direct_stock_addition
from factory_inventory.services.material_log_service import AuditResult, snapshot_material

logger = logging.getLogger("materials")

T = TypeVar("T")

_EDITABLE_FIELDS = ("name", "category", "unit", "current_stock", "threshold", "bill_number")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MutationResult(Generic[T]):
    primary: T
    audit: AuditResult


@dataclass
class DeleteOutcome:
    material_id: int
    material_logs_detached: int
    usage_logs_detached: int


async def list_materials(db: AsyncSession) -> list[Material]:
    return list((await db.execute(select(Material).order_by(Material.name.asc(), Material.id.asc()))).scalars().all())


async def get_material(db: AsyncSession, material_id: int) -> Material:
    m = await db.get(Material, material_id)
    if not m:
        raise MaterialNotFound(material_id)
    return m


async def list_low_stock(db: AsyncSession) -> list[Material]:
    stmt = (
        select(Material)
        .where(Material.current_stock < Material.threshold)
        .order_by(Material.name.asc(), Material.id.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def create_material(db: AsyncSession, data: dict[str, Any], *, username: str | None = None) -> MutationResult[Material]:
    now = _utcnow()
    m = Material(
        name=data["name"],
        category=data["category"],
        unit=data["unit"],
        current_stock=float(data.get("current_stock") or 0),
        threshold=float(data.get("threshold") or 0),
        bill_number=data.get("bill_number") or None,
        last_updated=now,
        created_at=now,
    )
    db.add(m)
    await db.commit()
    await db.refresh(m)
    logger.info("material created id=%s name=%s stock=%s", m.id, m.name, m.current_stock)

    audit = await material_log_service.record_creation(db, m, username=username or settings.system_actor)
    return MutationResult(primary=m, audit=audit)


async def update_material(
    db: AsyncSession,
    material_id: int,
    patch: dict[str, Any],
    *,
    username: str | None = None,
) -> MutationResult[Material]:
    m = await get_material(db, material_id)
    old = snapshot_material(m)

    for k, v in patch.items():
        if k in _EDITABLE_FIELDS:
            setattr(m, k, v)
    m.last_updated = _utcnow()
    await db.commit()
    await db.refresh(m)
    new = snapshot_material(m)
    logger.info("material updated id=%s fields=%s", m.id, sorted(k for k in patch if k in _EDITABLE_FIELDS))

    audit = await material_log_service.record_update(
        db, m.id, username=username or settings.system_actor, old=old, new=new
    )
    return MutationResult(primary=m, audit=audit)


async def update_stock(
    db: AsyncSession,
    material_id: int,
    new_stock: float,
    *,
    username: str | None = None,
) -> MutationResult[Material]:
    # Plain overwrite: concurrent writers race and the last one wins.
    return await update_material(db, material_id, {"current_stock": float(new_stock)}, username=username)


async def add_stock(
    db: AsyncSession,
    material_id: int,
    quantity: float,
    *,
    bill_number: str | None = None,
    username: str | None = None,
) -> MutationResult[Material]:
    m = await get_material(db, material_id)
    old = snapshot_material(m)
    await record_direct_stock_addition(db, material_id, quantity, bill_number=bill_number)
    await db.commit()
    await db.refresh(m)

    audit = await material_log_service.record_update(
        db, m.id, username=username or settings.system_actor, old=old, new=snapshot_material(m)
    )
    return MutationResult(primary=m, audit=audit)


async def _detach_log_rows(db: AsyncSession, material_id: int) -> tuple[int, int]:
    """Null out material references on audit and usage rows so they survive the delete."""
    r1 = await db.execute(
        update(MaterialLog).where(MaterialLog.material_id == material_id).values(material_id=None)
    )
    r2 = await db.execute(update(UsageLog).where(UsageLog.material_id == material_id).values(material_id=None))
    await db.flush()
    return int(r1.rowcount or 0), int(r2.rowcount or 0)


async def delete_material(
    db: AsyncSession,
    material_id: int,
    *,
    username: str | None = None,
) -> MutationResult[DeleteOutcome]:
    """
    Physically delete a material.

    Audit and usage rows pointing at it are detached first; if that fails the
    delete is not attempted and ReferenceCleanupFailed is raised. Batch
    allocations are never detached, so an allocated material is refused.
    """
    m = await get_material(db, material_id)
    snapshot = snapshot_material(m)

    allocations = int(
        (await db.scalar(select(func.count()).select_from(BatchMaterial).where(BatchMaterial.material_id == material_id)))
        or 0
    )
    if allocations > 0:
        raise MaterialInUse(
            "material is allocated to batches",
            {"material_id": material_id, "batch_material_count": allocations},
        )

    try:
        logs_detached, usage_detached = await _detach_log_rows(db, material_id)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning("detaching log rows failed material_id=%s: %s", material_id, e)
        raise ReferenceCleanupFailed(f"could not detach history rows of material {material_id}") from e

    await db.delete(m)
    await db.commit()
    logger.info(
        "material deleted id=%s name=%s material_logs_detached=%d usage_logs_detached=%d",
        material_id,
        snapshot.name,
        logs_detached,
        usage_detached,
    )

    audit = await material_log_service.record_deletion(db, snapshot, username=username or settings.system_actor)
    return MutationResult(
        primary=DeleteOutcome(
            material_id=material_id,
            material_logs_detached=logs_detached,
            usage_logs_detached=usage_detached,
        ),
        audit=audit,
    )
