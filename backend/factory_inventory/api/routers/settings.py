from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.api.deps import get_db, require_session
from factory_inventory.db.models.setting import Setting
from factory_inventory.schemas.setting import SettingOut, SettingValue, ThemeOut, ThemeUpdate
from factory_inventory.services import settings_service

router = APIRouter(prefix="/settings", tags=["settings"], dependencies=[Depends(require_session)])


@router.get("", response_model=list[SettingOut])
async def list_settings(
    user_id: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> list[Setting]:
    return await settings_service.all_for_user(db, user_id)


@router.get("/theme", response_model=ThemeOut)
async def get_theme(user_id: str | None = Query(default=None), db: AsyncSession = Depends(get_db)) -> ThemeOut:
    return ThemeOut(theme=await settings_service.get_theme(db, user_id))


@router.put("/theme", response_model=ThemeOut)
async def set_theme(
    body: ThemeUpdate,
    user_id: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> ThemeOut:
    return ThemeOut(theme=await settings_service.set_theme(db, body.theme, user_id))


@router.get("/{key}", response_model=SettingOut)
async def get_setting(key: str, user_id: str | None = Query(default=None), db: AsyncSession = Depends(get_db)) -> Setting:
    s = await settings_service.get_by_key(db, key, user_id)
    if s is None:
        raise HTTPException(status_code=404, detail="setting not found")
    return s


@router.put("/{key}", response_model=SettingOut)
async def put_setting(
    key: str,
    body: SettingValue,
    user_id: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> Setting:
    return await settings_service.set_setting(db, key, body.value, user_id)


@router.delete("/{key}")
async def delete_setting(key: str, user_id: str | None = Query(default=None), db: AsyncSession = Depends(get_db)) -> dict:
    deleted = await settings_service.delete_setting(db, key, user_id)
    return {"ok": True, "deleted": deleted}
