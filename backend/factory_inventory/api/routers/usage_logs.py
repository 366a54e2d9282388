from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.api.deps import get_db, require_session
from factory_inventory.schemas.usage_log import UsageLogCreate, UsageLogOut, UsageLogUpdate
from factory_inventory.services import usage_log_service
from factory_inventory.services.errors import UsageLogNotFound

router = APIRouter(prefix="/usage-logs", tags=["usage-logs"], dependencies=[Depends(require_session)])


@router.get("", response_model=list[UsageLogOut])
async def list_usage_logs(
    material_id: int | None = Query(default=None),
    user: str | None = Query(default=None, description="Case-insensitive substring of the actor label"),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    batch_id: int | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await usage_log_service.list_usage_logs(
        db,
        material_id=material_id,
        username=user,
        date_from=date_from,
        date_to=date_to,
        batch_id=batch_id,
    )


@router.post("", response_model=UsageLogOut, status_code=201)
async def create_usage_log(body: UsageLogCreate, db: AsyncSession = Depends(get_db)) -> dict:
    u = await usage_log_service.create_usage_log(db, body.model_dump())
    return await usage_log_service.get_usage_log(db, u.id)


@router.get("/{log_id}", response_model=UsageLogOut)
async def get_usage_log(log_id: int, db: AsyncSession = Depends(get_db)) -> dict:
    try:
        return await usage_log_service.get_usage_log(db, log_id)
    except UsageLogNotFound:
        raise HTTPException(status_code=404, detail="usage log not found")


@router.patch("/{log_id}", response_model=UsageLogOut)
async def update_usage_log(log_id: int, body: UsageLogUpdate, db: AsyncSession = Depends(get_db)) -> dict:
    try:
        await usage_log_service.update_usage_log(db, log_id, body.model_dump(exclude_unset=True))
        return await usage_log_service.get_usage_log(db, log_id)
    except UsageLogNotFound:
        raise HTTPException(status_code=404, detail="usage log not found")


@router.delete("/{log_id}")
async def delete_usage_log(log_id: int, db: AsyncSession = Depends(get_db)) -> dict:
    try:
        await usage_log_service.delete_usage_log(db, log_id)
    except UsageLogNotFound:
        raise HTTPException(status_code=404, detail="usage log not found")
    return {"ok": True}
