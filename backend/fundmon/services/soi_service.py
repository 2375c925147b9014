import logging
from datetime import date
from typing import List, Optional

from fundmon.core.config import settings
from fundmon.engine.ledger import cost_ledger_reader
from fundmon.engine.pipeline import resolve_window
from fundmon.engine.schedule import (
    AssetBreakdownRow,
    ScheduleOfInvestments,
    build_asset_breakdown,
    build_return_bases,
    build_schedule,
)
from fundmon.services.position_service import PositionService

logger = logging.getLogger(__name__)


class SOIService(PositionService):
    """
    Schedule of Investments: cumulative cost to the portfolio date, exact MV match.

    The schedule reads the vehicle's snapshot history rather than one date so
    that ITD and QTD returns can look back to earlier valuations.
    """

    async def get_schedule(
        self,
        vehicle_id: str,
        portfolio_date: date,
        top_n: Optional[int] = None,
    ) -> ScheduleOfInvestments:
        top_n = settings.SOI_DEFAULT_TOP_N if top_n is None else top_n
        window = resolve_window(portfolio_date)
        logger.info(f"[get_schedule] START vehicle={vehicle_id} portfolio_date={portfolio_date} top_n={top_n}")

        try:
            sources = await self.read_sources(vehicle_id, portfolio_date, window, with_history=True)
            position_set = await self.load_positions(
                vehicle_id, portfolio_date, window, sources=sources
            )
            schedule = build_schedule(
                position_set.project_positions,
                position_set.metadata,
                cost_ledger_reader.entry_valuations(sources.cost_events, window.end),
                cost_ledger_reader.asset_classes(sources.cost_events, window.end),
                top_n=top_n,
                high_moic_threshold=settings.SOI_HIGH_MOIC_THRESHOLD,
                return_bases=build_return_bases(
                    sources.cost_events, sources.snapshots, portfolio_date, window.end
                ),
            )
        except Exception as e:
            await self.degraded("get_schedule", vehicle_id, e)
            return ScheduleOfInvestments()

        logger.info(
            f"[get_schedule] {len(schedule.rows)} rows, "
            f"long tail: {'yes' if schedule.long_tail else 'no'}"
        )
        return schedule

    async def get_asset_breakdown(
        self,
        vehicle_id: str,
        project_id: str,
        portfolio_date: date,
    ) -> List[AssetBreakdownRow]:
        window = resolve_window(portfolio_date)
        try:
            position_set = await self.load_positions(
                vehicle_id, portfolio_date, window, with_metadata=False
            )
        except Exception as e:
            await self.degraded("get_asset_breakdown", vehicle_id, e)
            return []
        return build_asset_breakdown(position_set.asset_positions, project_id)
