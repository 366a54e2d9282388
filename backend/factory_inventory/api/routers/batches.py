from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.api.deps import get_db, require_session
from factory_inventory.db.models.batch import Batch
from factory_inventory.schemas.batch import (
    BatchCreate,
    BatchMaterialCreate,
    BatchMaterialOut,
    BatchOut,
    BatchStart,
    BatchStartResult,
    BatchStatusUpdate,
    BatchUpdate,
)
from factory_inventory.services import batch_service
from factory_inventory.services.errors import BatchMaterialNotFound, BatchNotFound, MaterialNotFound

router = APIRouter(prefix="/batches", tags=["batches"], dependencies=[Depends(require_session)])


@router.get("", response_model=list[BatchOut])
async def list_batches(db: AsyncSession = Depends(get_db)) -> list[Batch]:
    return await batch_service.list_batches(db)


@router.post("", response_model=BatchOut, status_code=201)
async def create_batch(body: BatchCreate, db: AsyncSession = Depends(get_db)) -> Batch:
    return await batch_service.create_batch(db, body.model_dump())


@router.post("/start", response_model=BatchStartResult, status_code=201)
async def start_batch(body: BatchStart, db: AsyncSession = Depends(get_db)) -> BatchStartResult:
    """Create an in-progress batch and book (allocate, log, deduct) its materials."""
    try:
        b, allocations = await batch_service.start_batch(
            db,
            batch_number=body.batch_number,
            product=body.product,
            description=body.description,
            materials=[m.model_dump() for m in body.materials],
        )
    except MaterialNotFound as e:
        raise HTTPException(status_code=404, detail={"message": "material not found", "material_id": e.args[0]})
    return BatchStartResult(
        batch=BatchOut.model_validate(b),
        materials=[BatchMaterialOut.model_validate(a) for a in allocations],
    )


@router.get("/{batch_id}", response_model=BatchOut)
async def get_batch(batch_id: int, db: AsyncSession = Depends(get_db)) -> Batch:
    try:
        return await batch_service.get_batch(db, batch_id)
    except BatchNotFound:
        raise HTTPException(status_code=404, detail="batch not found")


@router.patch("/{batch_id}", response_model=BatchOut)
async def update_batch(batch_id: int, body: BatchUpdate, db: AsyncSession = Depends(get_db)) -> Batch:
    try:
        return await batch_service.update_batch(db, batch_id, body.model_dump(exclude_unset=True))
    except BatchNotFound:
        raise HTTPException(status_code=404, detail="batch not found")


@router.put("/{batch_id}/status", response_model=BatchOut)
async def update_batch_status(batch_id: int, body: BatchStatusUpdate, db: AsyncSession = Depends(get_db)) -> Batch:
    try:
        return await batch_service.update_status(db, batch_id, body.status)
    except BatchNotFound:
        raise HTTPException(status_code=404, detail="batch not found")


@router.delete("/{batch_id}")
async def delete_batch(batch_id: int, db: AsyncSession = Depends(get_db)) -> dict:
    try:
        await batch_service.delete_batch(db, batch_id)
    except BatchNotFound:
        raise HTTPException(status_code=404, detail="batch not found")
    return {"ok": True}


@router.get("/{batch_id}/materials", response_model=list[BatchMaterialOut])
async def list_batch_materials(batch_id: int, db: AsyncSession = Depends(get_db)) -> list[dict]:
    try:
        return await batch_service.list_batch_materials(db, batch_id)
    except BatchNotFound:
        raise HTTPException(status_code=404, detail="batch not found")


@router.post("/{batch_id}/materials", response_model=BatchMaterialOut, status_code=201)
async def add_batch_material(
    batch_id: int,
    body: BatchMaterialCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await batch_service.add_material(db, batch_id, body.material_id, body.quantity)
    except BatchNotFound:
        raise HTTPException(status_code=404, detail="batch not found")
    except MaterialNotFound:
        raise HTTPException(status_code=404, detail="material not found")


@router.delete("/materials/{batch_material_id}")
async def remove_batch_material(batch_material_id: int, db: AsyncSession = Depends(get_db)) -> dict:
    try:
        await batch_service.remove_material(db, batch_material_id)
    except BatchMaterialNotFound:
        raise HTTPException(status_code=404, detail="batch material not found")
    return {"ok": True}
