from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field, field_validator

from factory_inventory.schemas.common import APIModel, AuditResultOut


def _required_text(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be empty")
    return v


RequiredText = Annotated[str, AfterValidator(_required_text)]


class MaterialCreate(BaseModel):
    name: RequiredText
    category: RequiredText
    unit: RequiredText
    current_stock: float = Field(default=0, ge=0)
    threshold: float = Field(default=0, ge=0)
    bill_number: str | None = None
    username: str | None = None


class MaterialUpdate(BaseModel):
    name: RequiredText | None = None
    category: RequiredText | None = None
    unit: RequiredText | None = None
    current_stock: float | None = Field(default=None, ge=0)
    threshold: float | None = Field(default=None, ge=0)
    bill_number: str | None = None
    username: str | None = None

    @field_validator("name", "category", "unit", "current_stock", "threshold", mode="before")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class StockUpdate(BaseModel):
    current_stock: float = Field(ge=0)
    username: str | None = None


class StockAdditionCreate(BaseModel):
    quantity: float = Field(gt=0)
    bill_number: str | None = None
    username: str | None = None


class MaterialOut(APIModel):
    id: int
    name: str
    category: str
    unit: str
    current_stock: float
    threshold: float
    bill_number: str | None = None
    last_updated: datetime
    created_at: datetime


class MaterialMutationOut(APIModel):
    material: MaterialOut
    audit: AuditResultOut


class MaterialDeleteOut(APIModel):
    ok: bool
    material_logs_detached: int
    usage_logs_detached: int
    audit: AuditResultOut
