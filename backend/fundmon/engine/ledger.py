"""
Cost Ledger Reader.

Turns the append-only stream of dated cost-delta events into cumulative cost
basis per position key, and answers "last known value as of cutoff" lookups
for the non-additive point attributes carried on the same events.
"""
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from fundmon.core.config import settings
from fundmon.engine.types import (
    UNKNOWN_ASSET_CLASS,
    CostEvent,
    CostWindow,
    Grain,
    PointAttributes,
    PositionKey,
)

POINT_ATTRIBUTES = (
    "overall_ownership_percentage",
    "overall_valuation",
    "established_type",
)

ENTRY_OWNERSHIP_TYPES = ("Established", "Top Up")


def position_key(project_id: str, asset_class: Optional[str], grain: Grain) -> PositionKey:
    if Grain(grain) == Grain.PROJECT:
        return (project_id, None)
    return (project_id, asset_class or UNKNOWN_ASSET_CLASS)


class CostLedgerReader:
    """
    Reads cost basis and point attributes from cost events.

    Events of the excluded project and events with the cash outcome type are
    outside the engine's scope; they belong to the excluded-positions path.
    """

    def __init__(
        self,
        excluded_project_id: str = settings.EXCLUDED_PROJECT_ID,
        cash_outcome_type: str = settings.CASH_OUTCOME_TYPE,
    ):
        self.excluded_project_id = excluded_project_id
        self.cash_outcome_type = cash_outcome_type

    def in_scope(self, event: CostEvent) -> bool:
        if event.project_id == self.excluded_project_id:
            return False
        return event.outcome_type != self.cash_outcome_type

    def scoped(self, events: Iterable[CostEvent], cutoff: date) -> List[CostEvent]:
        return [e for e in events if self.in_scope(e) and e.date_reported <= cutoff]

    def cumulative_cost(
        self,
        events: Iterable[CostEvent],
        window: CostWindow,
        grain: Grain = Grain.ASSET_CLASS,
    ) -> Dict[PositionKey, float]:
        """
        Sum delta_cost per key over in-scope events inside the window.

        Every key that has an in-scope event on or before the window end is
        present in the result, even when the window start excludes all of its
        events (cost 0), so that a later merge still sees the position.
        """
        costs: Dict[PositionKey, float] = {}
        ordered = sorted(
            self.scoped(events, window.end),
            key=lambda e: (e.date_reported, e.row_id),
        )
        for event in ordered:
            key = position_key(event.project_id, event.asset_class, grain)
            costs.setdefault(key, 0.0)
            if window.contains(event.date_reported):
                costs[key] += float(event.delta_cost or 0.0)
        return costs

    def latest_attributes(
        self,
        events: Iterable[CostEvent],
        cutoff: date,
        grain: Grain = Grain.ASSET_CLASS,
    ) -> Dict[PositionKey, PointAttributes]:
        """
        Last known value of each point attribute per key as of cutoff.

        Each attribute is resolved independently: the value comes from the
        latest event (date_reported, then row id) carrying a non-null value
        for that attribute.
        """
        by_key: Dict[PositionKey, List[CostEvent]] = defaultdict(list)
        for event in self.scoped(events, cutoff):
            by_key[position_key(event.project_id, event.asset_class, grain)].append(event)

        result: Dict[PositionKey, PointAttributes] = {}
        for key, key_events in by_key.items():
            key_events.sort(key=lambda e: (e.date_reported, e.row_id), reverse=True)
            values = {}
            for name in POINT_ATTRIBUTES:
                values[name] = next(
                    (getattr(e, name) for e in key_events if getattr(e, name) is not None),
                    None,
                )
            result[key] = PointAttributes(**values)
        return result

    def entry_valuations(
        self,
        events: Iterable[CostEvent],
        cutoff: date,
    ) -> Dict[str, Tuple[Optional[float], Optional[float]]]:
        """
        Per project: (first entry valuation, cost-weighted entry valuation).

        First entry is the lowest positive valuation seen. The weighted value
        uses only establishing and top-up events with a positive valuation and
        is None when their summed cost is not positive.
        """
        first_entry: Dict[str, Optional[float]] = {}
        weighted: Dict[str, List[float]] = defaultdict(lambda: [0.0, 0.0])

        for event in self.scoped(events, cutoff):
            valuation = event.overall_valuation
            first_entry.setdefault(event.project_id, None)
            if valuation is None or valuation <= 0:
                continue
            current = first_entry[event.project_id]
            if current is None or valuation < current:
                first_entry[event.project_id] = valuation
            if event.ownership_type in ENTRY_OWNERSHIP_TYPES:
                acc = weighted[event.project_id]
                acc[0] += event.delta_cost * valuation
                acc[1] += event.delta_cost

        result = {}
        for project_id, first in first_entry.items():
            weighted_sum, weight = weighted.get(project_id, (0.0, 0.0))
            result[project_id] = (first, weighted_sum / weight if weight > 0 else None)
        return result

    def asset_classes(self, events: Iterable[CostEvent], cutoff: date) -> Dict[str, Set[str]]:
        """Distinct asset classes per project among in-scope events."""
        classes: Dict[str, Set[str]] = defaultdict(set)
        for event in self.scoped(events, cutoff):
            classes[event.project_id].add(event.asset_class or UNKNOWN_ASSET_CLASS)
        return dict(classes)

    def cost_after(
        self,
        events: Iterable[CostEvent],
        after: Union[date, Mapping[str, date]],
        cutoff: date,
    ) -> Dict[str, float]:
        """
        Per project: in-scope cost reported strictly after `after`, up to cutoff.

        `after` is either one date for every project or a per-project date;
        projects missing from the mapping are left out.
        """
        costs: Dict[str, float] = defaultdict(float)
        for event in self.scoped(events, cutoff):
            if isinstance(after, date):
                since = after
            else:
                since = after.get(event.project_id)
                if since is None:
                    continue
            if event.date_reported > since:
                costs[event.project_id] += float(event.delta_cost or 0.0)
        return dict(costs)


cost_ledger_reader = CostLedgerReader()
