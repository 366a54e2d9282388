from __future__ import annotations

from factory_inventory.schemas.common import APIModel


class StockLevelOut(APIModel):
    id: int
    name: str
    unit: str
    current_stock: float
    threshold: float
    percent: int


class LowStockAlertOut(APIModel):
    id: int
    name: str
    unit: str
    current_stock: float
    threshold: float
    ratio: float


class TopMaterialOut(APIModel):
    name: str
    total: float
    unit: str


class DailyUsageOut(APIModel):
    day: str
    quantity: float
