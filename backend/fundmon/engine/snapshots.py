"""Valuation Snapshot Reader."""
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, Sequence, Tuple

from fundmon.core.config import settings
from fundmon.engine.ledger import position_key
from fundmon.engine.types import Grain, MarketValue, PositionKey, ValuationSnapshot


class ValuationSnapshotReader:
    """Looks up market value per key at one exact portfolio date."""

    def __init__(
        self,
        excluded_project_id: str = settings.EXCLUDED_PROJECT_ID,
        excluded_asset_classes: Sequence[str] = tuple(settings.EXCLUDED_ASSET_CLASSES),
    ):
        self.excluded_project_id = excluded_project_id
        self.excluded_asset_classes = frozenset(excluded_asset_classes)

    def in_scope(self, snapshot: ValuationSnapshot) -> bool:
        if snapshot.project_id == self.excluded_project_id:
            return False
        return snapshot.asset_class not in self.excluded_asset_classes

    def valuation_at(
        self,
        snapshots: Iterable[ValuationSnapshot],
        portfolio_date: date,
        grain: Grain = Grain.ASSET_CLASS,
    ) -> Dict[PositionKey, MarketValue]:
        """
        Market value per key at exactly portfolio_date.

        Several rows for the same key are summed. Rows for any other date are
        ignored; there is no nearest-date tolerance.
        """
        sums: Dict[PositionKey, list] = {}
        for snapshot in snapshots:
            if snapshot.portfolio_date != portfolio_date or not self.in_scope(snapshot):
                continue
            key = position_key(snapshot.project_id, snapshot.asset_class, grain)
            acc = sums.setdefault(key, [0.0, 0.0])
            acc[0] += float(snapshot.unrealized_market_value or 0.0)
            acc[1] += float(snapshot.realized_market_value or 0.0)
        return {key: MarketValue(unrealized=u, realized=r) for key, (u, r) in sums.items()}

    def first_valuations(
        self,
        snapshots: Iterable[ValuationSnapshot],
        up_to: date,
    ) -> Dict[str, Tuple[date, float]]:
        """
        Per project: the earliest portfolio date (on or before up_to) carrying an
        in-scope row with positive total market value, and the project's total
        market value summed over all in-scope rows of that date.
        """
        totals: Dict[Tuple[str, date], float] = defaultdict(float)
        first: Dict[str, date] = {}
        for snapshot in snapshots:
            if snapshot.portfolio_date > up_to or not self.in_scope(snapshot):
                continue
            day = snapshot.portfolio_date
            value = float(snapshot.unrealized_market_value or 0.0) + float(snapshot.realized_market_value or 0.0)
            totals[(snapshot.project_id, day)] += value
            if value > 0 and (snapshot.project_id not in first or day < first[snapshot.project_id]):
                first[snapshot.project_id] = day
        return {project_id: (day, totals[(project_id, day)]) for project_id, day in first.items()}


valuation_snapshot_reader = ValuationSnapshotReader()
