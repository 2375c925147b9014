"""
Value types shared by the position engine.

Inputs (CostEvent, ValuationSnapshot, ProjectMeta) mirror the store rows.
Derived records (Position, RollupRow, PositionDetail) are created per request
and never persisted.
"""
import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple

UNKNOWN_ASSET_CLASS = "Unknown"

EQUITY = "Equity"
TOKENS = "Tokens"
OTHERS = "Others"
ASSET_GROUPS: Tuple[str, ...] = (EQUITY, TOKENS, OTHERS)


class Grain(str, Enum):
    """Key granularity of a Position."""
    ASSET_CLASS = "asset_class"
    PROJECT = "project"


class Taxonomy(str, Enum):
    CATEGORY = "category"
    MOIC_BUCKET = "moic_bucket"
    ASSET_TYPE = "asset_type"
    VALUATION_STAGE = "valuation_stage"


class CategoryField(str, Enum):
    """Project metadata field driving the category taxonomy."""
    STACK = "stack"
    TAG = "tag"
    SUB_TAG = "sub_tag"


# (project_id, asset_class); asset_class is None at project grain
PositionKey = Tuple[str, Optional[str]]


@dataclass(frozen=True)
class CostEvent:
    """One reported change in cost basis."""
    project_id: str
    asset_class: Optional[str]
    date_reported: date
    delta_cost: float
    outcome_type: Optional[str] = None
    ownership_type: Optional[str] = None
    established_type: Optional[str] = None
    overall_ownership_percentage: Optional[float] = None
    overall_valuation: Optional[float] = None
    row_id: int = 0


@dataclass(frozen=True)
class ValuationSnapshot:
    """Market value of one (project, asset class) at a portfolio date."""
    project_id: str
    asset_class: Optional[str]
    portfolio_date: date
    unrealized_market_value: float = 0.0
    realized_market_value: float = 0.0


@dataclass(frozen=True)
class ProjectMeta:
    project_id: str
    name: Optional[str] = None
    stack: Optional[str] = None
    tag: Optional[str] = None
    sub_tag: Optional[str] = None
    coingecko_id: Optional[str] = None

    def category(self, field_name: CategoryField) -> Optional[str]:
        return getattr(self, CategoryField(field_name).value)


@dataclass(frozen=True)
class CostWindow:
    """
    Date bounds for cost summation.

    ``end`` is the inclusive cutoff; ``start`` is an inclusive lower bound,
    unbounded when None.
    """
    end: date
    start: Optional[date] = None

    def contains(self, day: date) -> bool:
        if day > self.end:
            return False
        return self.start is None or day >= self.start


@dataclass(frozen=True)
class PointAttributes:
    """Non-additive attributes read as last known value as of the cutoff."""
    overall_ownership_percentage: Optional[float] = None
    overall_valuation: Optional[float] = None
    established_type: Optional[str] = None


@dataclass(frozen=True)
class MarketValue:
    unrealized: float = 0.0
    realized: float = 0.0


@dataclass
class AssetAmounts:
    """Cost and market value attributed to one asset group of a project."""
    cost: float = 0.0
    unrealized_mv: float = 0.0
    realized_mv: float = 0.0

    @property
    def total_mv(self) -> float:
        return self.unrealized_mv + self.realized_mv


def calculate_moic(total_mv: float, cost: float) -> float:
    """
    Multiple on invested capital.

    Zero whenever there is no positive cost basis or no positive market value,
    so the result is never negative, infinite or NaN.
    """
    if not cost > 0 or not total_mv > 0:
        return 0.0
    moic = total_mv / cost
    return moic if math.isfinite(moic) else 0.0


def percentage(value: float, total: float) -> float:
    """value as a percentage of total; 0 unless total is positive."""
    if total <= 0:
        return 0.0
    result = value / total * 100
    return result if math.isfinite(result) else 0.0


def asset_group(asset_class: Optional[str]) -> str:
    """Fold an asset class into the Equity / Tokens / Others display groups."""
    asset_class = asset_class or UNKNOWN_ASSET_CLASS
    if asset_class == EQUITY:
        return EQUITY
    if asset_class == TOKENS:
        return TOKENS
    return OTHERS


@dataclass
class Position:
    """Merge of cost and market value at a chosen grain."""
    project_id: str
    asset_class: Optional[str]
    cost: float = 0.0
    unrealized_mv: float = 0.0
    realized_mv: float = 0.0
    attributes: PointAttributes = field(default_factory=PointAttributes)
    breakdown: Dict[str, AssetAmounts] = field(default_factory=dict)
    asset_classes: Tuple[str, ...] = ()

    @property
    def grain(self) -> Grain:
        return Grain.PROJECT if self.asset_class is None else Grain.ASSET_CLASS

    @property
    def key(self) -> PositionKey:
        return (self.project_id, self.asset_class)

    @property
    def total_mv(self) -> float:
        return self.unrealized_mv + self.realized_mv

    @property
    def moic(self) -> float:
        return calculate_moic(self.total_mv, self.cost)


@dataclass(frozen=True)
class GrandTotals:
    """Totals computed directly from the positions, independent of any classifier."""
    project_count: int = 0
    position_count: int = 0
    cost: float = 0.0
    unrealized_mv: float = 0.0
    realized_mv: float = 0.0

    @property
    def total_mv(self) -> float:
        return self.unrealized_mv + self.realized_mv

    @property
    def moic(self) -> float:
        return calculate_moic(self.total_mv, self.cost)


@dataclass
class RollupRow:
    """Aggregate of all positions sharing one classification label."""
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
    breakdown: Optional[Dict[str, AssetAmounts]] = None


@dataclass
class PositionDetail:
    """One project's contribution to a rollup label."""
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


@dataclass(frozen=True)
class TaxonomySelector:
    taxonomy: Taxonomy
    category_field: CategoryField = CategoryField.STACK

    @property
    def name(self) -> str:
        if self.taxonomy == Taxonomy.CATEGORY:
            return f"{self.taxonomy.value}:{self.category_field.value}"
        return self.taxonomy.value
