"""
Shared read path for the position services.

The cost and snapshot reads are independent and issued concurrently; the
merge waits for both (join barrier). Metadata is looked up afterwards for the
projects that actually appear.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from fundmon.core.config import settings
from fundmon.core.metrics import metrics
from fundmon.engine.pipeline import PositionSet, build_positions
from fundmon.engine.types import CostEvent, CostWindow, ValuationSnapshot
from fundmon.services.stores.base import (
    CostEventStore,
    ProjectMetadataStore,
    ValuationSnapshotStore,
)

logger = logging.getLogger(__name__)


@dataclass
class SourceRows:
    cost_events: List[CostEvent]
    snapshots: List[ValuationSnapshot]


class PositionService:

    def __init__(
        self,
        cost_store: CostEventStore,
        valuation_store: ValuationSnapshotStore,
        metadata_store: ProjectMetadataStore,
        strict: Optional[bool] = None,
    ):
        self.cost_store = cost_store
        self.valuation_store = valuation_store
        self.metadata_store = metadata_store
        self.strict = settings.STRICT_CLASSIFICATION if strict is None else strict

    async def read_sources(
        self,
        vehicle_id: str,
        portfolio_date: date,
        window: CostWindow,
        with_history: bool = False,
    ) -> SourceRows:
        """
        Cost events up to the window end and snapshots at the portfolio date,
        or every snapshot up to it when with_history is set.
        """
        snapshot_read = (
            self.valuation_store.history(vehicle_id, portfolio_date)
            if with_history
            else self.valuation_store.query(vehicle_id, portfolio_date)
        )
        cost_events, snapshots = await asyncio.gather(
            self.cost_store.query(vehicle_id, window.end),
            snapshot_read,
        )
        return SourceRows(cost_events=list(cost_events), snapshots=list(snapshots))

    async def load_positions(
        self,
        vehicle_id: str,
        portfolio_date: date,
        window: CostWindow,
        with_metadata: bool = True,
        sources: Optional[SourceRows] = None,
    ) -> PositionSet:
        sources = sources or await self.read_sources(vehicle_id, portfolio_date, window)
        position_set = build_positions(
            sources.cost_events, sources.snapshots, portfolio_date, window
        )
        if with_metadata and not position_set.is_empty():
            position_set.metadata = await self.metadata_store.lookup(position_set.project_ids)

        logger.debug(
            f"{vehicle_id}: {len(sources.cost_events)} cost events, {len(sources.snapshots)} snapshots "
            f"-> {len(position_set.asset_positions)} positions / "
            f"{len(position_set.project_positions)} projects"
        )
        return position_set

    async def degraded(self, operation: str, vehicle_id: Optional[str], error: Exception) -> None:
        """Log a failed read and record it; the caller returns its empty result."""
        logger.exception(f"[{operation}] source unavailable for vehicle={vehicle_id}: {error}")
        await metrics.source_unavailable(vehicle_id, operation, error)
