"""
Overview service: rollups, drill-downs and vehicle cards.

Every public operation is a fail-soft boundary. A store failure is logged,
recorded as a metric and turned into the operation's empty result; only a
classification gap in strict mode propagates.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Union

from fundmon.core.metrics import metrics
from fundmon.engine.classifier import get_classifier
from fundmon.engine.drilldown import drill_down_provider
from fundmon.engine.errors import ClassificationGapError
from fundmon.engine.pipeline import PositionSet, resolve_window
from fundmon.engine.rollup import rollup_aggregator
from fundmon.engine.types import (
    EQUITY,
    OTHERS,
    TOKENS,
    CategoryField,
    GrandTotals,
    PositionDetail,
    RollupRow,
    Taxonomy,
    calculate_moic,
)
from fundmon.services.position_service import PositionService

logger = logging.getLogger(__name__)


@dataclass
class Overview:
    """All four rollups computed from one read."""
    category: List[RollupRow] = field(default_factory=list)
    moic_bucket: List[RollupRow] = field(default_factory=list)
    asset_type: List[RollupRow] = field(default_factory=list)
    valuation_stage: List[RollupRow] = field(default_factory=list)
    totals: GrandTotals = field(default_factory=GrandTotals)


@dataclass
class VehicleSummary:
    vehicle_id: str
    position_count: int = 0
    project_count: int = 0
    cost: float = 0.0
    realized_mv: float = 0.0
    unrealized_mv: float = 0.0
    total_mv: float = 0.0
    moic: float = 0.0
    equity_cost: float = 0.0
    tokens_cost: float = 0.0
    others_cost: float = 0.0


class OverviewService(PositionService):

    async def get_rollup(
        self,
        vehicle_id: str,
        portfolio_date: date,
        taxonomy: Union[Taxonomy, str],
        cutoff_date: Optional[date] = None,
        category_field: Union[CategoryField, str] = CategoryField.STACK,
        cost_start_date: Optional[date] = None,
    ) -> List[RollupRow]:
        """
        Rollup rows for one taxonomy, summary rows last.

        Raises:
            UnknownTaxonomyError: bad taxonomy or category field
            ClassificationGapError: strict mode only
        """
        classifier = get_classifier(taxonomy, category_field)
        window = resolve_window(portfolio_date, cutoff_date, cost_start_date)
        logger.info(
            f"[get_rollup] START vehicle={vehicle_id} portfolio_date={portfolio_date} "
            f"cost_window={window.start}..{window.end} taxonomy={classifier.taxonomy}"
        )

        try:
            position_set = await self.load_positions(vehicle_id, portfolio_date, window)
            positions = position_set.at(classifier.grain)
            rows = rollup_aggregator.rollup(
                positions, classifier, position_set.metadata, strict=self.strict
            )
        except ClassificationGapError:
            raise
        except Exception as e:
            await self.degraded("get_rollup", vehicle_id, e)
            return []

        logger.info(f"[get_rollup] {classifier.taxonomy}: {len(rows)} rows from {len(positions)} positions")
        await metrics.rollup_computed(vehicle_id, classifier.taxonomy, len(rows), len(positions))
        return rows

    async def get_drill_down(
        self,
        vehicle_id: str,
        portfolio_date: date,
        taxonomy: Union[Taxonomy, str],
        label: str,
        cutoff_date: Optional[date] = None,
        category_field: Union[CategoryField, str] = CategoryField.STACK,
        cost_start_date: Optional[date] = None,
    ) -> List[PositionDetail]:
        """Positions behind one rollup label, using the rollup's classifier."""
        classifier = get_classifier(taxonomy, category_field)
        window = resolve_window(portfolio_date, cutoff_date, cost_start_date)
        logger.info(
            f"[get_drill_down] START vehicle={vehicle_id} portfolio_date={portfolio_date} "
            f"taxonomy={classifier.taxonomy} label={label!r}"
        )

        try:
            position_set = await self.load_positions(vehicle_id, portfolio_date, window)
            details = drill_down_provider.positions_in_label(
                position_set.at(classifier.grain),
                classifier,
                label,
                position_set.metadata,
                strict=self.strict,
            )
        except ClassificationGapError:
            raise
        except Exception as e:
            await self.degraded("get_drill_down", vehicle_id, e)
            return []

        logger.info(f"[get_drill_down] {classifier.taxonomy}/{label}: {len(details)} projects")
        await metrics.drilldown_computed(vehicle_id, classifier.taxonomy, label, len(details))
        return details

    async def get_overview(
        self,
        vehicle_id: str,
        portfolio_date: date,
        cutoff_date: Optional[date] = None,
        category_field: Union[CategoryField, str] = CategoryField.STACK,
        cost_start_date: Optional[date] = None,
    ) -> Overview:
        """All four taxonomies from a single fan-out read."""
        classifiers = {
            taxonomy: get_classifier(taxonomy, category_field) for taxonomy in Taxonomy
        }
        window = resolve_window(portfolio_date, cutoff_date, cost_start_date)
        logger.info(f"[get_overview] START vehicle={vehicle_id} portfolio_date={portfolio_date}")

        try:
            position_set = await self.load_positions(vehicle_id, portfolio_date, window)
            overview = self._overview(position_set, classifiers)
        except ClassificationGapError:
            raise
        except Exception as e:
            await self.degraded("get_overview", vehicle_id, e)
            return Overview()

        for taxonomy, classifier in classifiers.items():
            rows = getattr(overview, taxonomy.value)
            await metrics.rollup_computed(
                vehicle_id, classifier.taxonomy, len(rows), len(position_set.at(classifier.grain))
            )
        logger.info(
            f"[get_overview] {overview.totals.project_count} projects, "
            f"{overview.totals.position_count} positions"
        )
        return overview

    def _overview(self, position_set: PositionSet, classifiers: Dict) -> Overview:
        overview = Overview(
            totals=rollup_aggregator.compute_grand_totals(position_set.asset_positions)
        )
        for taxonomy, classifier in classifiers.items():
            rows = rollup_aggregator.rollup(
                position_set.at(classifier.grain),
                classifier,
                position_set.metadata,
                strict=self.strict,
            )
            setattr(overview, taxonomy.value, rows)
        return overview

    async def get_vehicle_cards(
        self,
        vehicle_ids: Sequence[str],
        portfolio_date: date,
    ) -> List[VehicleSummary]:
        """
        One summary per vehicle, in request order.

        Each vehicle runs as an independent concurrent unit; a failing vehicle
        becomes an all-zero summary without affecting the others.
        """
        logger.info(f"[get_vehicle_cards] START vehicles={len(vehicle_ids)} portfolio_date={portfolio_date}")
        summaries = await asyncio.gather(
            *(self._vehicle_summary(vehicle_id, portfolio_date) for vehicle_id in vehicle_ids)
        )
        return list(summaries)

    async def _vehicle_summary(self, vehicle_id: str, portfolio_date: date) -> VehicleSummary:
        window = resolve_window(portfolio_date)
        try:
            position_set = await self.load_positions(
                vehicle_id, portfolio_date, window, with_metadata=False
            )
        except Exception as e:
            await self.degraded("get_vehicle_cards", vehicle_id, e)
            return VehicleSummary(vehicle_id=vehicle_id)

        totals = rollup_aggregator.compute_grand_totals(position_set.asset_positions)
        group_cost = {EQUITY: 0.0, TOKENS: 0.0, OTHERS: 0.0}
        for project in position_set.project_positions:
            for group, amounts in project.breakdown.items():
                group_cost[group] += amounts.cost

        return VehicleSummary(
            vehicle_id=vehicle_id,
            position_count=totals.position_count,
            project_count=totals.project_count,
            cost=totals.cost,
            realized_mv=totals.realized_mv,
            unrealized_mv=totals.unrealized_mv,
            total_mv=totals.total_mv,
            moic=calculate_moic(totals.total_mv, totals.cost),
            equity_cost=group_cost[EQUITY],
            tokens_cost=group_cost[TOKENS],
            others_cost=group_cost[OTHERS],
        )
