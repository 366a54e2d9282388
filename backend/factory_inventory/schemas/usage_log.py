from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from factory_inventory.schemas.common import APIModel


class UsageLogCreate(BaseModel):
    material_id: int
    # Signed, see UsageLog.quantity
    quantity: float
    date: datetime | None = None
    username: str = Field(min_length=1)
    batch_id: int | None = None
    notes: str | None = None
    bill_number: str | None = None


class UsageLogUpdate(BaseModel):
    material_id: int | None = None
    quantity: float | None = None
    date: datetime | None = None
    username: str | None = Field(default=None, min_length=1)
    batch_id: int | None = None
    notes: str | None = None
    bill_number: str | None = None

    @field_validator("quantity", "date", "username", mode="before")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class UsageLogOut(APIModel):
    id: int
    material_id: int | None = None
    quantity: float
    date: datetime
    username: str
    batch_id: int | None = None
    notes: str | None = None
    bill_number: str | None = None
    created_at: datetime

    material_name: str | None = None
    material_category: str | None = None
    material_unit: str | None = None
    batch_number: str | None = None
