"""
Position classifiers for the four overview taxonomies.

Each taxonomy is an ordered list of (predicate, label) rules evaluated top-down,
first match wins. The same Classifier instance serves the rollup and the
drill-down so that both paths label every position identically.

Taxonomies:
- MOIC bucket (project grain)
- Asset type (asset-class grain)
- Valuation stage (asset-class grain)
- Category from project metadata: stack, tag or sub tag (project grain)
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from fundmon.core.metrics import metrics
from fundmon.engine.errors import ClassificationGapError, UnknownTaxonomyError
from fundmon.engine.types import (
    UNKNOWN_ASSET_CLASS,
    CategoryField,
    Grain,
    Position,
    ProjectMeta,
    Taxonomy,
    TaxonomySelector,
)

logger = logging.getLogger(__name__)

Predicate = Callable[[Position, Optional[ProjectMeta]], bool]
LabelFn = Callable[[Position, Optional[ProjectMeta]], str]
Rule = Tuple[Predicate, Union[str, LabelFn]]

TOTAL_LABEL = "TOTAL"


class MOICBucket:
    GRAND_SLAMS = "Grand Slams"
    HOME_RUN = "Home Run"
    DOUBLES_TRIPLES = "Doubles/Triples"
    BASE_HIT = "Base Hit"
    COST = "Cost"
    LOSS = "Loss"
    WRITE_OFF = "Write Off"
    WRITE_OFFS = "Write Offs"
    FULLY_DIVESTED = "Fully Divested / No Cost Basis"


class AssetType:
    EQUITY_DOWNROUNDS = "Equity Downrounds"
    EQUITY_UPROUNDS = "Equity Uprounds"
    EQUITY_COST = "Equity Cost"
    TGED_TOKENS = "TGEd Tokens (Private)"
    NON_TGED_TOKENS = "Non-TGEd Tokens (Private)"
    OTHER_TOKENS = "Other Tokens"
    LIQUID = "Liquid"

    @staticmethod
    def other(asset_class: Optional[str]) -> str:
        return f"Other({asset_class or UNKNOWN_ASSET_CLASS})"


class ValuationStage:
    PRE_SEED = "Early Stage: Pre-Seed"
    SEED = "Early Stage: Seed"
    SERIES_A = "Mid Stage: Series A"
    SERIES_B = "Late Stage: Series B"
    GROWTH = "Late Stage: Growth"
    UNKNOWN = "Unknown"

    # (exclusive upper bound, label), ascending
    THRESHOLDS = (
        (25_000_000, PRE_SEED),
        (50_000_000, SEED),
        (150_000_000, SERIES_A),
        (250_000_000, SERIES_B),
    )


UNCATEGORIZED = "Uncategorized"

MOIC_RANK = {
    MOICBucket.GRAND_SLAMS: 1,
    MOICBucket.HOME_RUN: 2,
    MOICBucket.DOUBLES_TRIPLES: 3,
    MOICBucket.BASE_HIT: 4,
    MOICBucket.COST: 5,
    MOICBucket.LOSS: 6,
    MOICBucket.WRITE_OFF: 7,
    MOICBucket.FULLY_DIVESTED: 8,
    MOICBucket.WRITE_OFFS: 9,
}

ASSET_TYPE_RANK = {
    AssetType.EQUITY_DOWNROUNDS: 1,
    AssetType.EQUITY_UPROUNDS: 2,
    AssetType.EQUITY_COST: 3,
    AssetType.TGED_TOKENS: 4,
    AssetType.NON_TGED_TOKENS: 5,
    AssetType.OTHER_TOKENS: 6,
    AssetType.LIQUID: 7,
}

VALUATION_STAGE_RANK = {
    ValuationStage.PRE_SEED: 1,
    ValuationStage.SEED: 2,
    ValuationStage.SERIES_A: 3,
    ValuationStage.SERIES_B: 4,
    ValuationStage.GROWTH: 5,
    ValuationStage.UNKNOWN: 6,
}


@dataclass(frozen=True)
class SummaryGroup:
    """A synthetic subtotal row over every label the predicate accepts."""
    label: str
    member: Callable[[str], bool]


@dataclass
class Classifier:
    taxonomy: str
    grain: Grain
    rules: Sequence[Rule]
    fallback: LabelFn
    rank: Dict[str, int] = field(default_factory=dict)
    sort_by_cost: bool = False
    summary_groups: Sequence[SummaryGroup] = ()
    has_total: bool = False
    carries_ownership: bool = False
    carries_breakdown: bool = False

    def classify(
        self,
        position: Position,
        meta: Optional[ProjectMeta] = None,
        strict: bool = False,
    ) -> str:
        for predicate, label in self.rules:
            if predicate(position, meta):
                return label(position, meta) if callable(label) else label

        if strict:
            raise ClassificationGapError(self.taxonomy, position.project_id, position.asset_class)

        fallback = self.fallback(position, meta)
        logger.warning(
            f"No {self.taxonomy} rule matched {position.project_id}/{position.asset_class}, "
            f"using '{fallback}'"
        )
        metrics.classification_gap(self.taxonomy, position.project_id, position.asset_class, fallback)
        return fallback

    def sort_key(self, label: str, cost: float):
        """Row ordering: explicit rank table, or total cost descending."""
        if self.sort_by_cost:
            return (-cost, label)
        return (self.rank.get(label, len(self.rank) + 1), label)

    def is_summary_label(self, label: str) -> bool:
        if self.has_total and label == TOTAL_LABEL:
            return True
        return any(group.label == label for group in self.summary_groups)


# =============================================================================
# Rule sets
# =============================================================================

def _always(position: Position, meta: Optional[ProjectMeta]) -> bool:
    return True


def _ratio(position: Position) -> float:
    return position.total_mv / position.cost


MOIC_RULES: List[Rule] = [
    (lambda p, m: p.cost is None or p.cost <= 0, MOICBucket.FULLY_DIVESTED),
    (lambda p, m: p.unrealized_mv == 0 and p.realized_mv == 0, MOICBucket.WRITE_OFFS),
    (lambda p, m: _ratio(p) >= 10, MOICBucket.GRAND_SLAMS),
    (lambda p, m: _ratio(p) >= 5, MOICBucket.HOME_RUN),
    (lambda p, m: _ratio(p) >= 2, MOICBucket.DOUBLES_TRIPLES),
    (lambda p, m: _ratio(p) > 1, MOICBucket.BASE_HIT),
    (lambda p, m: _ratio(p) >= 0.95, MOICBucket.COST),
    (lambda p, m: p.total_mv == 0, MOICBucket.WRITE_OFF),
    (_always, MOICBucket.LOSS),
]


def _is_equity(position: Position) -> bool:
    return position.asset_class == "Equity"


def _is_tokens(position: Position) -> bool:
    return position.asset_class == "Tokens"


def _established(position: Position) -> Optional[str]:
    return position.attributes.established_type


def _has_coingecko(meta: Optional[ProjectMeta]) -> bool:
    return bool(meta is not None and meta.coingecko_id)


ASSET_TYPE_RULES: List[Rule] = [
    (lambda p, m: _established(p) == "Liquid", AssetType.LIQUID),
    (lambda p, m: _is_equity(p) and p.unrealized_mv < p.cost, AssetType.EQUITY_DOWNROUNDS),
    (lambda p, m: _is_equity(p) and p.unrealized_mv > p.cost, AssetType.EQUITY_UPROUNDS),
    (lambda p, m: _is_equity(p), AssetType.EQUITY_COST),
    (lambda p, m: _is_tokens(p) and _has_coingecko(m) and _established(p) == "Private",
     AssetType.TGED_TOKENS),
    (lambda p, m: _is_tokens(p) and not _has_coingecko(m) and _established(p) == "Private",
     AssetType.NON_TGED_TOKENS),
    (lambda p, m: _is_tokens(p), AssetType.OTHER_TOKENS),
    (_always, lambda p, m: AssetType.other(p.asset_class)),
]


def _valuation(position: Position) -> Optional[float]:
    return position.attributes.overall_valuation


def _stage_rules() -> List[Rule]:
    rules: List[Rule] = [(lambda p, m: _valuation(p) is None, ValuationStage.UNKNOWN)]
    for bound, label in ValuationStage.THRESHOLDS:
        rules.append((lambda p, m, bound=bound: _valuation(p) < bound, label))
    rules.append((_always, ValuationStage.GROWTH))
    return rules


VALUATION_STAGE_RULES: List[Rule] = _stage_rules()


def _category_value(field_name: CategoryField, meta: Optional[ProjectMeta]) -> str:
    if meta is None:
        return ""
    return (meta.category(field_name) or "").strip()


def _category_rules(field_name: CategoryField) -> List[Rule]:
    return [
        (lambda p, m: bool(_category_value(field_name, m)),
         lambda p, m: _category_value(field_name, m)),
        (_always, UNCATEGORIZED),
    ]


# =============================================================================
# Factory
# =============================================================================

def _build_classifier(selector: TaxonomySelector) -> Classifier:
    taxonomy = selector.taxonomy

    if taxonomy == Taxonomy.MOIC_BUCKET:
        return Classifier(
            taxonomy=selector.name,
            grain=Grain.PROJECT,
            rules=MOIC_RULES,
            fallback=lambda p, m: MOICBucket.LOSS,
            rank=MOIC_RANK,
            carries_breakdown=True,
        )

    if taxonomy == Taxonomy.ASSET_TYPE:
        return Classifier(
            taxonomy=selector.name,
            grain=Grain.ASSET_CLASS,
            rules=ASSET_TYPE_RULES,
            fallback=lambda p, m: AssetType.other(p.asset_class),
            rank=ASSET_TYPE_RANK,
            summary_groups=(
                SummaryGroup("TOTAL Equity", lambda label: label.startswith("Equity")),
                SummaryGroup("TOTAL Tokens", lambda label: "Token" in label),
            ),
            has_total=True,
        )

    if taxonomy == Taxonomy.VALUATION_STAGE:
        return Classifier(
            taxonomy=selector.name,
            grain=Grain.ASSET_CLASS,
            rules=VALUATION_STAGE_RULES,
            fallback=lambda p, m: ValuationStage.UNKNOWN,
            rank=VALUATION_STAGE_RANK,
            summary_groups=(
                SummaryGroup("TOTAL Early Stage", lambda label: label.startswith("Early Stage")),
                SummaryGroup("TOTAL Mid Stage", lambda label: label.startswith("Mid Stage")),
                SummaryGroup("TOTAL Late Stage", lambda label: label.startswith("Late Stage")),
            ),
            has_total=True,
        )

    if taxonomy == Taxonomy.CATEGORY:
        return Classifier(
            taxonomy=selector.name,
            grain=Grain.PROJECT,
            rules=_category_rules(selector.category_field),
            fallback=lambda p, m: UNCATEGORIZED,
            sort_by_cost=True,
            carries_ownership=True,
        )

    raise UnknownTaxonomyError(f"Unknown taxonomy: {taxonomy}")


_classifiers: Dict[TaxonomySelector, Classifier] = {}


def get_classifier(
    taxonomy: Union[Taxonomy, str],
    category_field: Union[CategoryField, str] = CategoryField.STACK,
) -> Classifier:
    """
    Shared classifier for a taxonomy selector.

    Raises:
        UnknownTaxonomyError: taxonomy or category field is not recognised
    """
    try:
        selector = TaxonomySelector(Taxonomy(taxonomy), CategoryField(category_field))
    except ValueError as e:
        raise UnknownTaxonomyError(str(e)) from e
    if selector.taxonomy != Taxonomy.CATEGORY:
        selector = TaxonomySelector(selector.taxonomy)

    classifier = _classifiers.get(selector)
    if classifier is None:
        classifier = _build_classifier(selector)
        _classifiers[selector] = classifier
    return classifier
