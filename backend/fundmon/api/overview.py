"""
Portfolio overview endpoints.

Provides:
- All four rollup tables in one call
- A single taxonomy's rollup table
- Drill-down to the projects behind one rollup label
- Summary cards for several vehicles
"""
from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from fundmon.api.deps import get_overview_service
from fundmon.engine.types import CategoryField, Taxonomy
from fundmon.services.overview_service import OverviewService

router = APIRouter()


# ============================================================================
# Pydantic Response Schemas
# ============================================================================

class AssetAmountsResponse(BaseModel):
    cost: float
    unrealized_mv: float
    realized_mv: float
    total_mv: float

    class Config:
        from_attributes = True


class RollupRowResponse(BaseModel):
    """One rollup table row; summary rows are not drillable."""
    label: str
    is_summary: bool
    project_count: int
    position_count: int
    project_percentage: float
    count_percentage: float
    cost: float
    cost_percentage: float
    realized_mv: float
    realized_mv_percentage: float
    unrealized_mv: float
    unrealized_mv_percentage: float
    total_mv: float
    moic: float
    avg_ownership: Optional[float] = None
    median_ownership: Optional[float] = None
    breakdown: Optional[Dict[str, AssetAmountsResponse]] = None

    class Config:
        from_attributes = True


class GrandTotalsResponse(BaseModel):
    project_count: int
    position_count: int
    cost: float
    unrealized_mv: float
    realized_mv: float
    total_mv: float
    moic: float

    class Config:
        from_attributes = True


class OverviewResponse(BaseModel):
    category: List[RollupRowResponse]
    moic_bucket: List[RollupRowResponse]
    asset_type: List[RollupRowResponse]
    valuation_stage: List[RollupRowResponse]
    totals: GrandTotalsResponse

    class Config:
        from_attributes = True


class PositionDetailResponse(BaseModel):
    project_id: str
    project_name: str
    label: str
    asset_classes: List[str]
    position_count: int
    cost: float
    unrealized_mv: float
    realized_mv: float
    total_mv: float
    moic: float
    ownership: Optional[float] = None
    valuation: Optional[float] = None

    class Config:
        from_attributes = True


class VehicleSummaryResponse(BaseModel):
    vehicle_id: str
    position_count: int
    project_count: int
    cost: float
    realized_mv: float
    unrealized_mv: float
    total_mv: float
    moic: float
    equity_cost: float
    tokens_cost: float
    others_cost: float

    class Config:
        from_attributes = True


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/cards", response_model=List[VehicleSummaryResponse])
async def get_vehicle_cards(
    vehicle_ids: List[str] = Query(..., description="Vehicles to summarise"),
    portfolio_date: date = Query(..., description="Market value snapshot date"),
    service: OverviewService = Depends(get_overview_service),
) -> List[VehicleSummaryResponse]:
    summaries = await service.get_vehicle_cards(vehicle_ids, portfolio_date)
    return [VehicleSummaryResponse.model_validate(s) for s in summaries]


@router.get("/{vehicle_id}/overview", response_model=OverviewResponse)
async def get_overview(
    vehicle_id: str,
    portfolio_date: date = Query(..., description="Market value snapshot date"),
    cutoff_date: Optional[date] = Query(None, description="Cost cutoff (defaults to portfolio_date)"),
    cost_start_date: Optional[date] = Query(None, description="Lower bound for cost events"),
    category_field: CategoryField = Query(CategoryField.STACK),
    service: OverviewService = Depends(get_overview_service),
) -> OverviewResponse:
    overview = await service.get_overview(
        vehicle_id, portfolio_date, cutoff_date, category_field, cost_start_date
    )
    return OverviewResponse.model_validate(overview)


@router.get("/{vehicle_id}/overview/{taxonomy}", response_model=List[RollupRowResponse])
async def get_rollup(
    vehicle_id: str,
    taxonomy: Taxonomy,
    portfolio_date: date = Query(..., description="Market value snapshot date"),
    cutoff_date: Optional[date] = Query(None),
    cost_start_date: Optional[date] = Query(None),
    category_field: CategoryField = Query(CategoryField.STACK),
    service: OverviewService = Depends(get_overview_service),
) -> List[RollupRowResponse]:
    rows = await service.get_rollup(
        vehicle_id, portfolio_date, taxonomy, cutoff_date, category_field, cost_start_date
    )
    return [RollupRowResponse.model_validate(r) for r in rows]


@router.get("/{vehicle_id}/overview/{taxonomy}/positions", response_model=List[PositionDetailResponse])
async def get_drill_down(
    vehicle_id: str,
    taxonomy: Taxonomy,
    label: str = Query(..., min_length=1, description="Rollup row label"),
    portfolio_date: date = Query(..., description="Market value snapshot date"),
    cutoff_date: Optional[date] = Query(None),
    cost_start_date: Optional[date] = Query(None),
    category_field: CategoryField = Query(CategoryField.STACK),
    service: OverviewService = Depends(get_overview_service),
) -> List[PositionDetailResponse]:
    details = await service.get_drill_down(
        vehicle_id, portfolio_date, taxonomy, label, cutoff_date, category_field, cost_start_date
    )
    return [PositionDetailResponse.model_validate(d) for d in details]
