from __future__ import annotations

from datetime import datetime
from typing import Literal

from factory_inventory.schemas.common import APIModel


class MaterialTransactionOut(APIModel):
    id: str
    date: datetime
    category: Literal["Purchase", "Consumption"]
    reference: str
    inflow: float | None = None
    outflow: float | None = None
    # balance immediately after this transaction
    stock: float
    notes: str | None = None
    bill_number: str | None = None
    formatted_date: str | None = None
