from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.db.models.setting import Setting

THEME_KEY = "theme"
DEFAULT_THEME = "system"


def _scope(stmt, user_id: str | None):
    if user_id:
        return stmt.where(Setting.user_id == user_id)
    return stmt.where(Setting.user_id.is_(None))


async def get_by_key(db: AsyncSession, key: str, user_id: str | None = None) -> Setting | None:
    stmt = _scope(select(Setting).where(Setting.key == key), user_id).order_by(Setting.id.asc())
    return (await db.execute(stmt)).scalars().first()


async def all_for_user(db: AsyncSession, user_id: str | None = None) -> list[Setting]:
    stmt = _scope(select(Setting), user_id).order_by(Setting.key.asc())
    return list((await db.execute(stmt)).scalars().all())


async def set_setting(db: AsyncSession, key: str, value: Any, user_id: str | None = None) -> Setting:
    s = await get_by_key(db, key, user_id)
    if s is not None:
        s.value = value
        await db.commit()
        await db.refresh(s)
        return s

    s = Setting(key=key, value=value, user_id=user_id or None, created_at=datetime.now(timezone.utc))
    db.add(s)
    try:
        await db.commit()
    except IntegrityError:
        # a concurrent writer inserted the same (key, user_id) first; update that row instead
        await db.rollback()
        s = await get_by_key(db, key, user_id)
        if s is None:
            raise
        s.value = value
        await db.commit()
    await db.refresh(s)
    return s


async def delete_setting(db: AsyncSession, key: str, user_id: str | None = None) -> int:
    res = await db.execute(_scope(delete(Setting).where(Setting.key == key), user_id))
    await db.commit()
    return int(res.rowcount or 0)


async def get_theme(db: AsyncSession, user_id: str | None = None) -> str:
    s = await get_by_key(db, THEME_KEY, user_id)
    if s is None or not isinstance(s.value, str) or not s.value:
        return DEFAULT_THEME
    return s.value


async def set_theme(db: AsyncSession, theme: str, user_id: str | None = None) -> str:
    s = await set_setting(db, THEME_KEY, theme, user_id)
    return str(s.value)
