from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class APIModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class Health(APIModel):
    status: str
    time: datetime


class AuditResultOut(APIModel):
    ok: bool
    log_id: int | None = None
    error: str | None = None
