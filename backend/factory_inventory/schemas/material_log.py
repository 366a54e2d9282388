from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from factory_inventory.schemas.common import APIModel


class MaterialSnapshot(BaseModel):
    name: str = "Unknown"
    category: str = "Unknown"
    unit: str = ""
    current_stock: float = 0
    threshold: float = 0
    bill_number: str | None = None


class CreateDetails(MaterialSnapshot):
    pass


class FieldChange(BaseModel):
    old: Any = None
    new: Any = None


class UpdateDetails(BaseModel):
    old: dict[str, Any]
    new: dict[str, Any]
    changes: dict[str, FieldChange] = Field(default_factory=dict)


class DeleteDetails(MaterialSnapshot):
    deleted_at: datetime


class _MaterialLogBase(APIModel):
    id: int
    material_id: int | None = None
    username: str
    timestamp: datetime
    material_name: str | None = None
    material_category: str | None = None
    material_unit: str | None = None


class MaterialCreateLogOut(_MaterialLogBase):
    action_type: Literal["create"]
    details: CreateDetails


class MaterialUpdateLogOut(_MaterialLogBase):
    action_type: Literal["update"]
    details: UpdateDetails


class MaterialDeleteLogOut(_MaterialLogBase):
    action_type: Literal["delete"]
    details: DeleteDetails


MaterialLogOut = Annotated[
    Union[MaterialCreateLogOut, MaterialUpdateLogOut, MaterialDeleteLogOut],
    Field(discriminator="action_type"),
]
