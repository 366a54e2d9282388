from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.core.config import settings
from factory_inventory.db.models.batch import BATCH_IN_PROGRESS, Batch
from factory_inventory.db.models.batch_material import BatchMaterial
from factory_inventory.db.models.material import Material
from factory_inventory.db.models.usage_log import UsageLog
from factory_inventory.services.errors import BatchMaterialNotFound, BatchNotFound, MaterialNotFound
from factory_inventory.services.ledger_service import as_utc

logger = logging.getLogger("batches")

_EDITABLE_FIELDS = ("batch_number", "product", "date", "status", "description")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def list_batches(db: AsyncSession) -> list[Batch]:
    return list((await db.execute(select(Batch).order_by(Batch.date.desc(), Batch.id.desc()))).scalars().all())


async def get_batch(db: AsyncSession, batch_id: int) -> Batch:
    b = await db.get(Batch, batch_id)
    if not b:
        raise BatchNotFound(batch_id)
    return b


async def create_batch(db: AsyncSession, data: dict[str, Any]) -> Batch:
    now = _utcnow()
    b = Batch(
        batch_number=data["batch_number"],
        product=data["product"],
        date=as_utc(data["date"]) if data.get("date") else now,
        status=data.get("status") or BATCH_IN_PROGRESS,
        description=data.get("description"),
        created_at=now,
    )
    db.add(b)
    await db.commit()
    await db.refresh(b)
    return b


async def update_batch(db: AsyncSession, batch_id: int, patch: dict[str, Any]) -> Batch:
    b = await get_batch(db, batch_id)
    for k, v in patch.items():
        if k not in _EDITABLE_FIELDS:
            continue
        if k == "date" and v is not None:
            v = as_utc(v)
        setattr(b, k, v)
    await db.commit()
    await db.refresh(b)
    return b


async def update_status(db: AsyncSession, batch_id: int, status: str) -> Batch:
    return await update_batch(db, batch_id, {"status": status})


async def delete_batch(db: AsyncSession, batch_id: int) -> None:
    b = await get_batch(db, batch_id)
    # allocations first, then the batch itself
    await db.execute(delete(BatchMaterial).where(BatchMaterial.batch_id == batch_id))
    await db.delete(b)
    await db.commit()
    logger.info("batch deleted id=%s number=%s", batch_id, b.batch_number)


def _allocation_out(bm: BatchMaterial, name: str | None, unit: str | None) -> dict:
    return {
        "id": bm.id,
        "batch_id": bm.batch_id,
        "material_id": bm.material_id,
        "quantity": float(bm.quantity),
        "created_at": bm.created_at,
        "material_name": name,
        "material_unit": unit,
    }


async def list_batch_materials(db: AsyncSession, batch_id: int) -> list[dict]:
    await get_batch(db, batch_id)
    rows = (
        await db.execute(
            select(BatchMaterial, Material.name, Material.unit)
            .outerjoin(Material, Material.id == BatchMaterial.material_id)
            .where(BatchMaterial.batch_id == batch_id)
            .order_by(BatchMaterial.id.asc())
        )
    ).all()
    return [_allocation_out(bm, name, unit) for bm, name, unit in rows]


async def add_material(db: AsyncSession, batch_id: int, material_id: int, quantity: float) -> BatchMaterial:
    await get_batch(db, batch_id)
    if not await db.get(Material, material_id):
        raise MaterialNotFound(material_id)
    bm = BatchMaterial(batch_id=batch_id, material_id=material_id, quantity=float(quantity), created_at=_utcnow())
    db.add(bm)
    await db.commit()
    await db.refresh(bm)
    return bm


async def remove_material(db: AsyncSession, batch_material_id: int) -> None:
    bm = await db.get(BatchMaterial, batch_material_id)
    if not bm:
        raise BatchMaterialNotFound(batch_material_id)
    await db.delete(bm)
    await db.commit()


async def start_batch(
    db: AsyncSession,
    *,
    batch_number: str,
    product: str,
    description: str | None,
    materials: list[dict[str, Any]],
) -> tuple[Batch, list[dict]]:
    """
    Open a production batch and book its materials in one transaction.

    Per material: an allocation row, a consumption usage log by the system actor,
    and a stock deduction floored at zero.
    """
    now = _utcnow()
    b = Batch(
        batch_number=batch_number,
        product=product,
        date=now,
        status=BATCH_IN_PROGRESS,
        description=description or None,
        created_at=now,
    )
    db.add(b)
    await db.flush()

    allocations: list[tuple[BatchMaterial, Material]] = []
    for item in materials:
        material_id = int(item["material_id"])
        quantity = float(item.get("quantity") or 0)
        m = await db.get(Material, material_id)
        if not m:
            await db.rollback()
            raise MaterialNotFound(material_id)

        bm = BatchMaterial(batch_id=b.id, material_id=material_id, quantity=quantity, created_at=now)
        db.add(bm)
        db.add(
            UsageLog(
                material_id=material_id,
                quantity=quantity,
                date=now,
                username=settings.system_actor,
                batch_id=b.id,
                notes=f"Added to batch {b.batch_number} for product {b.product}",
                created_at=now,
            )
        )
        before = float(m.current_stock)
        m.current_stock = max(0.0, before - quantity)
        m.last_updated = now
        allocations.append((bm, m))
        logger.info(
            "batch stock deduction batch=%s material_id=%s before=%s qty=%s after=%s",
            b.batch_number,
            material_id,
            before,
            quantity,
            m.current_stock,
        )

    await db.commit()
    await db.refresh(b)
    return b, [_allocation_out(bm, m.name, m.unit) for bm, m in allocations]
