"""
Excluded positions.

Cost events and snapshots that the overview engine filters out (the
catch-all project, cash, NAV adjustments, flows) are grouped here so the
fund totals can still be reconciled.
"""
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from fundmon.core.config import settings
from fundmon.engine.types import CostEvent, CostWindow, ValuationSnapshot

OTHER_ASSETS = "Other Assets"
CASH_AND_EQUIVALENTS = "Cash & Cash Equivalents"
NAV_ADJUSTMENT = "NAV Adjustment"
FLOWS = "Flows"

EXCLUDED_CATEGORIES = (OTHER_ASSETS, CASH_AND_EQUIVALENTS, NAV_ADJUSTMENT, FLOWS)


@dataclass
class ExcludedCategory:
    category: str
    project_count: int
    cost: float
    unrealized_mv: float
    realized_mv: float
    total_mv: float


@dataclass
class ExcludedPositionDetail:
    project_id: str
    description: str
    cost: float
    unrealized_mv: float
    realized_mv: float
    total_mv: float


class ExcludedPositionsReader:

    def __init__(
        self,
        excluded_project_id: str = settings.EXCLUDED_PROJECT_ID,
        cash_outcome_type: str = settings.CASH_OUTCOME_TYPE,
    ):
        self.excluded_project_id = excluded_project_id
        self.cash_outcome_type = cash_outcome_type
        self.snapshot_categories = {
            NAV_ADJUSTMENT: NAV_ADJUSTMENT,
            FLOWS: FLOWS,
            "Cash": CASH_AND_EQUIVALENTS,
        }

    def cost_category(self, event: CostEvent) -> Optional[str]:
        if event.project_id == self.excluded_project_id:
            return OTHER_ASSETS
        if event.outcome_type == self.cash_outcome_type:
            return CASH_AND_EQUIVALENTS
        return None

    def snapshot_category(self, snapshot: ValuationSnapshot) -> Optional[str]:
        if snapshot.project_id == self.excluded_project_id:
            return OTHER_ASSETS
        return self.snapshot_categories.get(snapshot.asset_class)

    def combined(
        self,
        events: Iterable[CostEvent],
        snapshots: Iterable[ValuationSnapshot],
        portfolio_date: date,
        window: CostWindow,
    ) -> Dict[Tuple[str, str], List[float]]:
        """(category, project_id) -> [cost, unrealized, realized], full outer join."""
        combined: Dict[Tuple[str, str], List[float]] = {}

        for event in events:
            category = self.cost_category(event)
            if category is None or not window.contains(event.date_reported):
                continue
            acc = combined.setdefault((category, event.project_id), [0.0, 0.0, 0.0])
            acc[0] += float(event.delta_cost or 0.0)

        for snapshot in snapshots:
            if snapshot.portfolio_date != portfolio_date:
                continue
            category = self.snapshot_category(snapshot)
            if category is None:
                continue
            acc = combined.setdefault((category, snapshot.project_id), [0.0, 0.0, 0.0])
            acc[1] += float(snapshot.unrealized_market_value or 0.0)
            acc[2] += float(snapshot.realized_market_value or 0.0)

        return combined

    def categories(
        self,
        events: Sequence[CostEvent],
        snapshots: Sequence[ValuationSnapshot],
        portfolio_date: date,
        window: CostWindow,
    ) -> List[ExcludedCategory]:
        """One row per non-empty category, in fixed display order."""
        combined = self.combined(events, snapshots, portfolio_date, window)
        rows = []
        for category in EXCLUDED_CATEGORIES:
            members = [amounts for (cat, _), amounts in sorted(combined.items()) if cat == category]
            if not members:
                continue
            unrealized = sum(m[1] for m in members)
            realized = sum(m[2] for m in members)
            rows.append(ExcludedCategory(
                category=category,
                project_count=len(members),
                cost=sum(m[0] for m in members),
                unrealized_mv=unrealized,
                realized_mv=realized,
                total_mv=unrealized + realized,
            ))
        return rows

    def details(
        self,
        events: Sequence[CostEvent],
        snapshots: Sequence[ValuationSnapshot],
        portfolio_date: date,
        window: CostWindow,
        category: str,
    ) -> List[ExcludedPositionDetail]:
        """Per-project rows of one category, largest absolute market value first."""
        if category not in EXCLUDED_CATEGORIES:
            return []
        combined = self.combined(events, snapshots, portfolio_date, window)
        rows = [
            ExcludedPositionDetail(
                project_id=project_id,
                description=project_id or "Unknown",
                cost=cost,
                unrealized_mv=unrealized,
                realized_mv=realized,
                total_mv=unrealized + realized,
            )
            for (cat, project_id), (cost, unrealized, realized) in combined.items()
            if cat == category
        ]
        rows.sort(key=lambda r: (-abs(r.total_mv), -abs(r.cost), r.project_id))
        return rows

    def totals(
        self,
        events: Sequence[CostEvent],
        snapshots: Sequence[ValuationSnapshot],
        portfolio_date: date,
        window: CostWindow,
    ) -> ExcludedCategory:
        rows = self.categories(events, snapshots, portfolio_date, window)
        return ExcludedCategory(
            category="Total",
            project_count=sum(r.project_count for r in rows),
            cost=sum(r.cost for r in rows),
            unrealized_mv=sum(r.unrealized_mv for r in rows),
            realized_mv=sum(r.realized_mv for r in rows),
            total_mv=sum(r.total_mv for r in rows),
        )


excluded_positions_reader = ExcludedPositionsReader()
