"""
Schedule of Investments.

Project-grain table sorted by cost, with a Top-N cut that keeps high-MOIC
positions visible and folds everything else into one long tail row.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from fundmon.engine.ledger import CostLedgerReader, cost_ledger_reader
from fundmon.engine.snapshots import ValuationSnapshotReader, valuation_snapshot_reader
from fundmon.engine.types import (
    EQUITY,
    OTHERS,
    TOKENS,
    UNKNOWN_ASSET_CLASS,
    CostEvent,
    Grain,
    Position,
    ProjectMeta,
    ValuationSnapshot,
    calculate_moic,
)


@dataclass
class ScheduleRow:
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
    is_long_tail: bool = False
    is_high_moic_exception: bool = False
    has_asset_breakdown: bool = False
    itd_fund: Optional[float] = None
    itd_individual: Optional[float] = None
    qtd_fund: Optional[float] = None
    qtd_individual: Optional[float] = None


@dataclass
class ScheduleSummary:
    total_positions: int = 0
    total_cost: float = 0.0
    total_realized_mv: float = 0.0
    total_unrealized_mv: float = 0.0
    total_mv: float = 0.0
    portfolio_moic: float = 0.0
    portfolio_itd: float = 0.0
    portfolio_qtd: Optional[float] = None
    equity_cost: float = 0.0
    equity_cost_percentage: float = 0.0
    tokens_cost: float = 0.0
    tokens_cost_percentage: float = 0.0
    others_cost: float = 0.0
    others_cost_percentage: float = 0.0


@dataclass
class ScheduleOfInvestments:
    rows: List[ScheduleRow] = field(default_factory=list)
    long_tail: Optional[ScheduleRow] = None
    summary: ScheduleSummary = field(default_factory=ScheduleSummary)


@dataclass
class AssetBreakdownRow:
    project_id: str
    asset_class: str
    cost: float
    cost_percentage: float
    realized_mv: float
    unrealized_mv: float
    total_mv: float
    moic: float


@dataclass
class ReturnBasis:
    """Market value and cost flows a project's ITD and QTD returns are measured against."""
    first_total_mv: float = 0.0
    cost_since_first_mv: float = 0.0
    prev_quarter_mv: float = 0.0
    quarter_cost_change: float = 0.0

    def itd_return(self, total_mv: float) -> Optional[float]:
        if self.first_total_mv <= 0:
            return None
        base = self.first_total_mv + self.cost_since_first_mv
        return total_mv / base - 1 if base > 0 else None

    def qtd_return(self, total_mv: float) -> Optional[float]:
        # no return for a project absent at quarter start and untouched since
        if self.prev_quarter_mv <= 0 and self.quarter_cost_change == 0:
            return None
        base = self.prev_quarter_mv + self.quarter_cost_change
        return total_mv / base - 1 if base > 0 else None


def previous_quarter_end(day: date) -> date:
    """Last calendar quarter end strictly before the quarter containing day."""
    if day.month <= 3:
        return date(day.year - 1, 12, 31)
    if day.month <= 6:
        return date(day.year, 3, 31)
    if day.month <= 9:
        return date(day.year, 6, 30)
    return date(day.year, 9, 30)


def build_return_bases(
    cost_events: Iterable[CostEvent],
    snapshot_history: Iterable[ValuationSnapshot],
    portfolio_date: date,
    cutoff: date,
    ledger: CostLedgerReader = cost_ledger_reader,
    snapshot_reader: ValuationSnapshotReader = valuation_snapshot_reader,
) -> Dict[str, ReturnBasis]:
    """
    ReturnBasis per project from the vehicle's snapshot history up to the
    portfolio date and its cost events up to cutoff.
    """
    cost_events = list(cost_events)
    snapshot_history = list(snapshot_history)
    quarter_start = previous_quarter_end(portfolio_date)

    first = snapshot_reader.first_valuations(snapshot_history, portfolio_date)
    cost_since_first = ledger.cost_after(
        cost_events, {pid: day for pid, (day, _) in first.items()}, cutoff
    )
    prev_quarter = snapshot_reader.valuation_at(snapshot_history, quarter_start, Grain.PROJECT)
    quarter_cost = ledger.cost_after(cost_events, quarter_start, cutoff)

    bases: Dict[str, ReturnBasis] = {}
    for project_id, (_, first_mv) in first.items():
        basis = bases.setdefault(project_id, ReturnBasis())
        basis.first_total_mv = first_mv
        basis.cost_since_first_mv = cost_since_first.get(project_id, 0.0)
    for (project_id, _), mv in prev_quarter.items():
        bases.setdefault(project_id, ReturnBasis()).prev_quarter_mv = mv.unrealized + mv.realized
    for project_id, change in quarter_cost.items():
        bases.setdefault(project_id, ReturnBasis()).quarter_cost_change = change
    return bases


def _share(value: float, total: float) -> float:
    return value / total * 100 if total > 0 else 0.0


def _mean(values: List[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    return sum(present) / len(present) if present else None


def _mv_weighted(rows: Sequence[ScheduleRow], attr: str) -> Optional[float]:
    """Average of a per-row return weighted by total MV, over rows that have one."""
    present = [r for r in rows if getattr(r, attr) is not None]
    weight = sum(r.total_mv for r in present)
    if not present or weight <= 0:
        return None
    return sum(getattr(r, attr) * r.total_mv for r in present) / weight


def build_schedule(
    positions: Sequence[Position],
    metadata: Mapping[str, ProjectMeta],
    entry_valuations: Mapping[str, Tuple[Optional[float], Optional[float]]],
    asset_classes: Mapping[str, Set[str]],
    top_n: int = 50,
    high_moic_threshold: float = 5.0,
    return_bases: Optional[Mapping[str, ReturnBasis]] = None,
) -> ScheduleOfInvestments:
    """
    Build the schedule from project-grain positions.

    Args:
        positions: Project-grain positions (with asset group breakdown)
        metadata: project_id -> ProjectMeta, for display names
        entry_valuations: project_id -> (first entry, weighted valuation)
        asset_classes: project_id -> asset classes seen in the ledger
        top_n: Rows shown before the long tail; 0 shows every row
        high_moic_threshold: MOIC at which a row escapes the long tail
        return_bases: project_id -> ReturnBasis; projects without one get no
            ITD or QTD return
    """
    if not positions:
        return ScheduleOfInvestments()

    total_cost = sum(p.cost for p in positions)
    total_realized = sum(p.realized_mv for p in positions)
    total_unrealized = sum(p.unrealized_mv for p in positions)
    return_bases = return_bases or {}

    rows = []
    for p in sorted(positions, key=lambda p: (-p.cost, p.project_id)):
        meta = metadata.get(p.project_id)
        first_entry, weighted = entry_valuations.get(p.project_id, (None, None))
        moic = p.moic
        basis = return_bases.get(p.project_id)
        rows.append(ScheduleRow(
            project_id=p.project_id,
            project_name=(meta.name if meta is not None and meta.name else p.project_id),
            cost=p.cost,
            cost_percentage=_share(p.cost, total_cost),
            realized_mv=p.realized_mv,
            realized_mv_percentage=_share(p.realized_mv, total_realized),
            unrealized_mv=p.unrealized_mv,
            unrealized_mv_percentage=_share(p.unrealized_mv, total_unrealized),
            total_mv=p.total_mv,
            moic=moic,
            first_entry=first_entry,
            weighted_valuation=weighted,
            is_high_moic_exception=moic >= high_moic_threshold,
            has_asset_breakdown=len(asset_classes.get(p.project_id, ())) > 1,
            itd_individual=basis.itd_return(p.total_mv) if basis is not None else None,
            qtd_individual=basis.qtd_return(p.total_mv) if basis is not None else None,
        ))

    long_tail = None
    if top_n > 0 and len(rows) > top_n:
        remaining = rows[top_n:]
        exceptions = [r for r in remaining if r.is_high_moic_exception]
        tail = [r for r in remaining if not r.is_high_moic_exception]
        rows = rows[:top_n] + exceptions
        if tail:
            long_tail = _long_tail_row(tail, total_cost, total_realized, total_unrealized)

    total_mv = total_realized + total_unrealized
    portfolio_itd = _mv_weighted(rows, "itd_individual")
    if portfolio_itd is None:
        portfolio_itd = (total_mv - total_cost) / total_cost if total_cost > 0 else 0.0
    portfolio_qtd = _mv_weighted(rows, "qtd_individual")
    for row in rows + ([long_tail] if long_tail is not None else []):
        row.itd_fund = portfolio_itd
        row.qtd_fund = portfolio_qtd

    summary = _summary(positions, total_cost, total_realized, total_unrealized)
    summary.portfolio_itd = portfolio_itd
    summary.portfolio_qtd = portfolio_qtd
    return ScheduleOfInvestments(rows=rows, long_tail=long_tail, summary=summary)


def _long_tail_row(
    tail: List[ScheduleRow],
    total_cost: float,
    total_realized: float,
    total_unrealized: float,
) -> ScheduleRow:
    cost = sum(r.cost for r in tail)
    realized = sum(r.realized_mv for r in tail)
    unrealized = sum(r.unrealized_mv for r in tail)
    label = f"Long Tail ({len(tail)} positions)"
    return ScheduleRow(
        project_id=label,
        project_name=label,
        cost=cost,
        cost_percentage=_share(cost, total_cost),
        realized_mv=realized,
        realized_mv_percentage=_share(realized, total_realized),
        unrealized_mv=unrealized,
        unrealized_mv_percentage=_share(unrealized, total_unrealized),
        total_mv=realized + unrealized,
        moic=calculate_moic(realized + unrealized, cost),
        first_entry=_mean([r.first_entry for r in tail]),
        weighted_valuation=_mean([r.weighted_valuation for r in tail]),
        itd_individual=_mv_weighted(tail, "itd_individual"),
        qtd_individual=_mv_weighted(tail, "qtd_individual"),
        is_long_tail=True,
    )


def _summary(
    positions: Sequence[Position],
    total_cost: float,
    total_realized: float,
    total_unrealized: float,
) -> ScheduleSummary:
    group_cost: Dict[str, float] = {EQUITY: 0.0, TOKENS: 0.0, OTHERS: 0.0}
    for p in positions:
        for group, amounts in p.breakdown.items():
            group_cost[group] = group_cost.get(group, 0.0) + amounts.cost

    total_mv = total_realized + total_unrealized
    return ScheduleSummary(
        total_positions=len(positions),
        total_cost=total_cost,
        total_realized_mv=total_realized,
        total_unrealized_mv=total_unrealized,
        total_mv=total_mv,
        portfolio_moic=calculate_moic(total_mv, total_cost),
        equity_cost=group_cost[EQUITY],
        equity_cost_percentage=_share(group_cost[EQUITY], total_cost),
        tokens_cost=group_cost[TOKENS],
        tokens_cost_percentage=_share(group_cost[TOKENS], total_cost),
        others_cost=group_cost[OTHERS],
        others_cost_percentage=_share(group_cost[OTHERS], total_cost),
    )


def build_asset_breakdown(asset_positions: Sequence[Position], project_id: str) -> List[AssetBreakdownRow]:
    """Asset-class rows of one project, cost share within the project."""
    members = [p for p in asset_positions if p.project_id == project_id]
    project_cost = sum(p.cost for p in members)
    rows = [
        AssetBreakdownRow(
            project_id=project_id,
            asset_class=p.asset_class or UNKNOWN_ASSET_CLASS,
            cost=p.cost,
            cost_percentage=_share(p.cost, project_cost),
            realized_mv=p.realized_mv,
            unrealized_mv=p.unrealized_mv,
            total_mv=p.total_mv,
            moic=p.moic,
        )
        for p in members
    ]
    rows.sort(key=lambda r: (-r.cost, r.asset_class))
    return rows
