from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

from factory_inventory.schemas.common import APIModel


class SettingValue(BaseModel):
    value: Any = None


class SettingOut(APIModel):
    id: int
    key: str
    value: Any = None
    user_id: str | None = None
    created_at: datetime


class ThemeOut(APIModel):
    theme: str


class ThemeUpdate(BaseModel):
    theme: Literal["light", "dark", "system"]
