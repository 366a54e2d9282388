from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.api.deps import get_db, require_session
from factory_inventory.schemas.report import DailyUsageOut, LowStockAlertOut, StockLevelOut, TopMaterialOut
from factory_inventory.services import report_service

router = APIRouter(prefix="/reports", tags=["reports"], dependencies=[Depends(require_session)])


@router.get("/stock-levels", response_model=list[StockLevelOut])
async def stock_levels(db: AsyncSession = Depends(get_db)) -> list[dict]:
    return await report_service.stock_levels(db)


@router.get("/low-stock", response_model=list[LowStockAlertOut])
async def low_stock_alerts(db: AsyncSession = Depends(get_db)) -> list[dict]:
    return await report_service.low_stock_alerts(db)


@router.get("/top-materials", response_model=list[TopMaterialOut])
async def top_materials(
    limit: int = Query(default=5, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await report_service.top_materials(db, limit=limit)


@router.get("/daily-usage", response_model=list[DailyUsageOut])
async def daily_usage(
    days: int = Query(default=7, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    return await report_service.daily_usage(db, days=days)
