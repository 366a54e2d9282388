from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from factory_inventory.schemas.common import APIModel

BatchStatus = Literal["In Progress", "Completed"]


class BatchCreate(BaseModel):
    batch_number: str = Field(min_length=1)
    product: str = Field(min_length=1)
    date: datetime | None = None
    status: BatchStatus = "In Progress"
    description: str | None = None


class BatchUpdate(BaseModel):
    batch_number: str | None = Field(default=None, min_length=1)
    product: str | None = Field(default=None, min_length=1)
    date: datetime | None = None
    status: BatchStatus | None = None
    description: str | None = None

    @field_validator("batch_number", "product", "date", "status", mode="before")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class BatchStatusUpdate(BaseModel):
    status: BatchStatus


class BatchOut(APIModel):
    id: int
    batch_number: str
    product: str
    date: datetime
    status: str
    description: str | None = None
    created_at: datetime


class BatchMaterialCreate(BaseModel):
    material_id: int
    quantity: float = Field(ge=0)


class BatchMaterialOut(APIModel):
    id: int
    batch_id: int
    material_id: int
    quantity: float
    created_at: datetime
    material_name: str | None = None
    material_unit: str | None = None


class BatchStartMaterial(BaseModel):
    material_id: int
    quantity: float = Field(default=0, ge=0)


class BatchStart(BaseModel):
    batch_number: str = Field(min_length=1)
    product: str = Field(min_length=1)
    description: str | None = None
    materials: list[BatchStartMaterial] = Field(default_factory=list)


class BatchStartResult(APIModel):
    batch: BatchOut
    materials: list[BatchMaterialOut]
