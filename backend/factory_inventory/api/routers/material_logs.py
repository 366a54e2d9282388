from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.api.deps import get_db, require_session
from factory_inventory.schemas.material_log import MaterialLogOut
from factory_inventory.services import material_log_service

router = APIRouter(prefix="/material-logs", tags=["material-logs"], dependencies=[Depends(require_session)])


@router.get("", response_model=list[MaterialLogOut])
async def list_material_logs(
    material_id: int | None = Query(default=None),
    action_type: Literal["create", "update", "delete"] | None = Query(default=None),
    username: str | None = Query(default=None, description="Case-insensitive substring"),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await material_log_service.list_material_logs(
        db,
        material_id=material_id,
        action_type=action_type,
        username=username,
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/by-material/{material_id}", response_model=list[MaterialLogOut])
async def logs_for_material(material_id: int, db: AsyncSession = Depends(get_db)) -> list[dict]:
    return await material_log_service.list_material_logs(db, material_id=material_id)
