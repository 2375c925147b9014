"""Excluded positions endpoints (Other Assets, cash, NAV adjustments, flows)."""
import asyncio
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from fundmon.api.deps import get_excluded_positions_service
from fundmon.services.excluded_positions_service import ExcludedPositionsService

router = APIRouter()


class ExcludedCategoryResponse(BaseModel):
    category: str
    project_count: int
    cost: float
    unrealized_mv: float
    realized_mv: float
    total_mv: float

    class Config:
        from_attributes = True


class ExcludedPositionsResponse(BaseModel):
    categories: List[ExcludedCategoryResponse]
    total: ExcludedCategoryResponse


class ExcludedPositionDetailResponse(BaseModel):
    project_id: str
    description: str
    cost: float
    unrealized_mv: float
    realized_mv: float
    total_mv: float

    class Config:
        from_attributes = True


@router.get("/{vehicle_id}/excluded-positions", response_model=ExcludedPositionsResponse)
async def get_excluded_positions(
    vehicle_id: str,
    portfolio_date: date = Query(...),
    cutoff_date: Optional[date] = Query(None),
    cost_start_date: Optional[date] = Query(None),
    service: ExcludedPositionsService = Depends(get_excluded_positions_service),
) -> ExcludedPositionsResponse:
    categories, total = await asyncio.gather(
        service.get_excluded_positions(vehicle_id, portfolio_date, cutoff_date, cost_start_date),
        service.get_excluded_totals(vehicle_id, portfolio_date, cutoff_date, cost_start_date),
    )
    return ExcludedPositionsResponse(
        categories=[ExcludedCategoryResponse.model_validate(c) for c in categories],
        total=ExcludedCategoryResponse.model_validate(total),
    )


@router.get("/{vehicle_id}/excluded-positions/{category}", response_model=List[ExcludedPositionDetailResponse])
async def get_excluded_position_details(
    vehicle_id: str,
    category: str,
    portfolio_date: date = Query(...),
    cutoff_date: Optional[date] = Query(None),
    cost_start_date: Optional[date] = Query(None),
    service: ExcludedPositionsService = Depends(get_excluded_positions_service),
) -> List[ExcludedPositionDetailResponse]:
    rows = await service.get_excluded_position_details(
        vehicle_id, portfolio_date, category, cutoff_date, cost_start_date
    )
    return [ExcludedPositionDetailResponse.model_validate(r) for r in rows]
