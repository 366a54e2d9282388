from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from factory_inventory.db.base import Base


class Setting(Base):
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(Text, nullable=False)
    value: Mapped[Any] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    # None = global (dashboard-wide) setting
    user_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


# One row per (key, user_id); global rows (user_id NULL) need their own partial index.
Index("ux_settings_key_user", Setting.key, Setting.user_id, unique=True)
Index(
    "ux_settings_key_global",
    Setting.key,
    unique=True,
    postgresql_where=Setting.user_id.is_(None),
    sqlite_where=Setting.user_id.is_(None),
)
