from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.api.deps import get_db, require_session
from factory_inventory.db.models.material import Material
from factory_inventory.schemas.common import AuditResultOut
from factory_inventory.schemas.ledger import MaterialTransactionOut
from factory_inventory.schemas.material import (
    MaterialCreate,
    MaterialDeleteOut,
    MaterialMutationOut,
    MaterialOut,
    MaterialUpdate,
    StockAdditionCreate,
    StockUpdate,
)
from factory_inventory.services import ledger_service, material_service
from factory_inventory.services.errors import (
    LedgerUnavailable,
    MaterialInUse,
    MaterialNotFound,
    ReferenceCleanupFailed,
)
from factory_inventory.services.material_service import MutationResult


router = APIRouter(prefix="/materials", tags=["materials"], dependencies=[Depends(require_session)])


def _mutation_out(result: MutationResult[Material]) -> MaterialMutationOut:
    return MaterialMutationOut(
        material=MaterialOut.model_validate(result.primary),
        audit=AuditResultOut.model_validate(result.audit),
    )


@router.get("", response_model=list[MaterialOut])
async def list_materials(db: AsyncSession = Depends(get_db)) -> list[Material]:
    return await material_service.list_materials(db)


@router.get("/low-stock", response_model=list[MaterialOut])
async def list_low_stock(db: AsyncSession = Depends(get_db)) -> list[Material]:
    return await material_service.list_low_stock(db)


@router.post("", response_model=MaterialMutationOut, status_code=201)
async def create_material(body: MaterialCreate, db: AsyncSession = Depends(get_db)) -> MaterialMutationOut:
    data = body.model_dump(exclude={"username"})
    result = await material_service.create_material(db, data, username=body.username)
    return _mutation_out(result)


@router.get("/{material_id}", response_model=MaterialOut)
async def get_material(material_id: int, db: AsyncSession = Depends(get_db)) -> Material:
    try:
        return await material_service.get_material(db, material_id)
    except MaterialNotFound:
        raise HTTPException(status_code=404, detail="material not found")


@router.patch("/{material_id}", response_model=MaterialMutationOut)
async def update_material(
    material_id: int,
    body: MaterialUpdate,
    db: AsyncSession = Depends(get_db),
) -> MaterialMutationOut:
    patch = body.model_dump(exclude_unset=True, exclude={"username"})
    try:
        result = await material_service.update_material(db, material_id, patch, username=body.username)
    except MaterialNotFound:
        raise HTTPException(status_code=404, detail="material not found")
    return _mutation_out(result)


@router.put("/{material_id}/stock", response_model=MaterialMutationOut)
async def set_stock(material_id: int, body: StockUpdate, db: AsyncSession = Depends(get_db)) -> MaterialMutationOut:
    try:
        result = await material_service.update_stock(db, material_id, body.current_stock, username=body.username)
    except MaterialNotFound:
        raise HTTPException(status_code=404, detail="material not found")
    return _mutation_out(result)


@router.post("/{material_id}/stock-additions", response_model=MaterialMutationOut)
async def add_stock(
    material_id: int,
    body: StockAdditionCreate,
    db: AsyncSession = Depends(get_db),
) -> MaterialMutationOut:
    try:
        result = await material_service.add_stock(
            db, material_id, body.quantity, bill_number=body.bill_number, username=body.username
        )
    except MaterialNotFound:
        raise HTTPException(status_code=404, detail="material not found")
    return _mutation_out(result)


@router.delete("/{material_id}", response_model=MaterialDeleteOut)
async def delete_material(
    material_id: int,
    username: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> MaterialDeleteOut:
    try:
        result = await material_service.delete_material(db, material_id, username=username)
    except MaterialNotFound:
        raise HTTPException(status_code=404, detail="material not found")
    except MaterialInUse as e:
        raise HTTPException(status_code=409, detail={**e.detail, "message": e.message})
    except ReferenceCleanupFailed as e:
        raise HTTPException(status_code=409, detail={"message": str(e), "material_id": material_id})
    outcome = result.primary
    return MaterialDeleteOut(
        ok=True,
        material_logs_detached=outcome.material_logs_detached,
        usage_logs_detached=outcome.usage_logs_detached,
        audit=AuditResultOut.model_validate(result.audit),
    )


@router.get("/{material_id}/history", response_model=list[MaterialTransactionOut])
async def material_history(
    material_id: int,
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> list[MaterialTransactionOut]:
    """Balance-annotated transaction history, newest first."""
    try:
        txs = await ledger_service.get_material_history(db, material_id, date_from=date_from, date_to=date_to)
    except MaterialNotFound:
        raise HTTPException(status_code=404, detail="material not found")
    except LedgerUnavailable as e:
        raise HTTPException(status_code=503, detail={"message": str(e), "retry": True})
    return [MaterialTransactionOut.model_validate(t) for t in txs]
