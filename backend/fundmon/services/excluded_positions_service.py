import logging
from datetime import date
from typing import List, Optional

from fundmon.engine.excluded import (
    ExcludedCategory,
    ExcludedPositionDetail,
    excluded_positions_reader,
)
from fundmon.engine.pipeline import resolve_window
from fundmon.services.position_service import PositionService

logger = logging.getLogger(__name__)


class ExcludedPositionsService(PositionService):
    """Positions the overview filters out: Other Assets, cash, NAV adjustments, flows."""

    async def get_excluded_positions(
        self,
        vehicle_id: str,
        portfolio_date: date,
        cutoff_date: Optional[date] = None,
        cost_start_date: Optional[date] = None,
    ) -> List[ExcludedCategory]:
        window = resolve_window(portfolio_date, cutoff_date, cost_start_date)
        try:
            sources = await self.read_sources(vehicle_id, portfolio_date, window)
        except Exception as e:
            await self.degraded("get_excluded_positions", vehicle_id, e)
            return []
        rows = excluded_positions_reader.categories(
            sources.cost_events, sources.snapshots, portfolio_date, window
        )
        logger.info(f"[get_excluded_positions] vehicle={vehicle_id}: {len(rows)} categories")
        return rows

    async def get_excluded_position_details(
        self,
        vehicle_id: str,
        portfolio_date: date,
        category: str,
        cutoff_date: Optional[date] = None,
        cost_start_date: Optional[date] = None,
    ) -> List[ExcludedPositionDetail]:
        window = resolve_window(portfolio_date, cutoff_date, cost_start_date)
        try:
            sources = await self.read_sources(vehicle_id, portfolio_date, window)
        except Exception as e:
            await self.degraded("get_excluded_position_details", vehicle_id, e)
            return []
        return excluded_positions_reader.details(
            sources.cost_events, sources.snapshots, portfolio_date, window, category
        )

    async def get_excluded_totals(
        self,
        vehicle_id: str,
        portfolio_date: date,
        cutoff_date: Optional[date] = None,
        cost_start_date: Optional[date] = None,
    ) -> ExcludedCategory:
        window = resolve_window(portfolio_date, cutoff_date, cost_start_date)
        try:
            sources = await self.read_sources(vehicle_id, portfolio_date, window)
        except Exception as e:
            await self.degraded("get_excluded_totals", vehicle_id, e)
            return ExcludedCategory("Total", 0, 0.0, 0.0, 0.0, 0.0)
        return excluded_positions_reader.totals(
            sources.cost_events, sources.snapshots, portfolio_date, window
        )
