"""Schedule of Investments endpoints."""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from fundmon.api.deps import get_soi_service
from fundmon.services.soi_service import SOIService

router = APIRouter()


class ScheduleRowResponse(BaseModel):
    project_id: str
    project_name: str
    cost: float
    cost_percentage: float
    realized_mv: float
    realized_mv_percentage: float
    unrealized_mv: float
    unrealized_mv_percentage: float
    total_mv: float
    moic: float
    first_entry: Optional[float] = None
    weighted_valuation: Optional[float] = None
    is_long_tail: bool
    is_high_moic_exception: bool
    has_asset_breakdown: bool
    itd_fund: Optional[float] = None
    itd_individual: Optional[float] = None
    qtd_fund: Optional[float] = None
    qtd_individual: Optional[float] = None

    class Config:
        from_attributes = True


class ScheduleSummaryResponse(BaseModel):
    total_positions: int
    total_cost: float
    total_realized_mv: float
    total_unrealized_mv: float
    total_mv: float
    portfolio_moic: float
    portfolio_itd: float
    portfolio_qtd: Optional[float] = None
    equity_cost: float
    equity_cost_percentage: float
    tokens_cost: float
    tokens_cost_percentage: float
    others_cost: float
    others_cost_percentage: float

    class Config:
        from_attributes = True


class ScheduleResponse(BaseModel):
    rows: List[ScheduleRowResponse]
    long_tail: Optional[ScheduleRowResponse] = None
    summary: ScheduleSummaryResponse

    class Config:
        from_attributes = True


class AssetBreakdownResponse(BaseModel):
    project_id: str
    asset_class: str
    cost: float
    cost_percentage: float
    realized_mv: float
    unrealized_mv: float
    total_mv: float
    moic: float

    class Config:
        from_attributes = True


@router.get("/{vehicle_id}/soi", response_model=ScheduleResponse)
async def get_schedule(
    vehicle_id: str,
    portfolio_date: date = Query(..., description="Market value snapshot date"),
    top_n: Optional[int] = Query(None, ge=0, description="Rows before the long tail; 0 shows all"),
    service: SOIService = Depends(get_soi_service),
) -> ScheduleResponse:
    schedule = await service.get_schedule(vehicle_id, portfolio_date, top_n)
    return ScheduleResponse.model_validate(schedule)


@router.get("/{vehicle_id}/soi/{project_id}/assets", response_model=List[AssetBreakdownResponse])
async def get_asset_breakdown(
    vehicle_id: str,
    project_id: str,
    portfolio_date: date = Query(...),
    service: SOIService = Depends(get_soi_service),
) -> List[AssetBreakdownResponse]:
    rows = await service.get_asset_breakdown(vehicle_id, project_id, portfolio_date)
    return [AssetBreakdownResponse.model_validate(r) for r in rows]
