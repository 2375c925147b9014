"""
Position pipeline: readers -> merger, at both grains.

Everything here is pure; the caller supplies the raw store rows.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence

from fundmon.engine.ledger import CostLedgerReader, cost_ledger_reader
from fundmon.engine.merger import PositionMerger, position_merger
from fundmon.engine.snapshots import ValuationSnapshotReader, valuation_snapshot_reader
from fundmon.engine.types import (
    CostEvent,
    CostWindow,
    Grain,
    Position,
    ProjectMeta,
    ValuationSnapshot,
)


@dataclass
class PositionSet:
    """Positions derived from one read of the stores."""
    asset_positions: List[Position] = field(default_factory=list)
    project_positions: List[Position] = field(default_factory=list)
    metadata: Dict[str, ProjectMeta] = field(default_factory=dict)

    def at(self, grain: Grain) -> List[Position]:
        if Grain(grain) == Grain.PROJECT:
            return self.project_positions
        return self.asset_positions

    @property
    def project_ids(self) -> List[str]:
        return [p.project_id for p in self.project_positions]

    def is_empty(self) -> bool:
        return not self.asset_positions


def resolve_window(
    portfolio_date: date,
    cutoff_date: Optional[date] = None,
    cost_start_date: Optional[date] = None,
) -> CostWindow:
    """Cost is cumulative up to the portfolio date unless a cutoff is given."""
    return CostWindow(end=cutoff_date or portfolio_date, start=cost_start_date)


def build_positions(
    cost_events: Sequence[CostEvent],
    snapshots: Sequence[ValuationSnapshot],
    portfolio_date: date,
    window: CostWindow,
    metadata: Optional[Dict[str, ProjectMeta]] = None,
    ledger: CostLedgerReader = cost_ledger_reader,
    snapshot_reader: ValuationSnapshotReader = valuation_snapshot_reader,
    merger: PositionMerger = position_merger,
) -> PositionSet:
    """
    Merge cost and market value at asset-class grain, then roll up to projects.

    Project positions are always sums of the asset-class positions so the two
    grains reconcile exactly. Point attributes are resolved separately per
    grain: per (project, asset class) for the asset positions and per project
    for the project positions.
    """
    cost_map = ledger.cumulative_cost(cost_events, window, Grain.ASSET_CLASS)
    valuation_map = snapshot_reader.valuation_at(snapshots, portfolio_date, Grain.ASSET_CLASS)
    asset_attributes = ledger.latest_attributes(cost_events, window.end, Grain.ASSET_CLASS)
    project_attributes = ledger.latest_attributes(cost_events, window.end, Grain.PROJECT)

    asset_positions = merger.merge(cost_map, valuation_map, asset_attributes)
    project_positions = merger.roll_up_to_projects(asset_positions, project_attributes)

    return PositionSet(
        asset_positions=asset_positions,
        project_positions=project_positions,
        metadata=dict(metadata or {}),
    )
