"""
SQLAlchemy-backed stores.

Each query opens its own session so the cost and snapshot reads of one
request can run concurrently.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy.future import select

from fundmon.core.database import AsyncSessionLocal
from fundmon.engine.types import CostEvent, ProjectMeta, ValuationSnapshot
from fundmon.models import FundMarketValue, OwnershipEvent, Project
from fundmon.services.stores.base import (
    CostEventStore,
    ProjectMetadataStore,
    ValuationSnapshotStore,
)

logger = logging.getLogger(__name__)


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


class SqlCostEventStore(CostEventStore):

    def __init__(self, session_factory=AsyncSessionLocal):
        self.session_factory = session_factory

    async def query(self, vehicle_id: str, cutoff_date: date) -> List[CostEvent]:
        async with self.session_factory() as session:
            stmt = (
                select(OwnershipEvent)
                .where(OwnershipEvent.vehicle_id == vehicle_id)
                .where(OwnershipEvent.date_reported <= cutoff_date)
                .order_by(OwnershipEvent.date_reported, OwnershipEvent.id)
            )
            result = await session.execute(stmt)
            rows = result.scalars().all()

        logger.debug(f"Loaded {len(rows)} cost events for {vehicle_id} <= {cutoff_date}")
        return [
            CostEvent(
                project_id=row.project_id,
                asset_class=row.asset_class,
                date_reported=row.date_reported,
                delta_cost=_to_float(row.delta_cost) or 0.0,
                outcome_type=row.outcome_type,
                ownership_type=row.ownership_type,
                established_type=row.established_type,
                overall_ownership_percentage=_to_float(row.overall_ownership_percentage),
                overall_valuation=_to_float(row.overall_valuation),
                row_id=row.id,
            )
            for row in rows
        ]


class SqlValuationSnapshotStore(ValuationSnapshotStore):

    def __init__(self, session_factory=AsyncSessionLocal):
        self.session_factory = session_factory

    async def query(self, vehicle_id: str, portfolio_date: date) -> List[ValuationSnapshot]:
        stmt = (
            select(FundMarketValue)
            .where(FundMarketValue.vehicle_id == vehicle_id)
            .where(FundMarketValue.portfolio_date == portfolio_date)
            .order_by(FundMarketValue.id)
        )
        snapshots = await self._fetch(stmt)
        logger.debug(f"Loaded {len(snapshots)} snapshots for {vehicle_id} @ {portfolio_date}")
        return snapshots

    async def history(self, vehicle_id: str, end_date: date) -> List[ValuationSnapshot]:
        stmt = (
            select(FundMarketValue)
            .where(FundMarketValue.vehicle_id == vehicle_id)
            .where(FundMarketValue.portfolio_date <= end_date)
            .order_by(FundMarketValue.portfolio_date, FundMarketValue.id)
        )
        snapshots = await self._fetch(stmt)
        logger.debug(f"Loaded {len(snapshots)} snapshots for {vehicle_id} <= {end_date}")
        return snapshots

    async def _fetch(self, stmt) -> List[ValuationSnapshot]:
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()

        return [
            ValuationSnapshot(
                project_id=row.project_id,
                asset_class=row.asset_class,
                portfolio_date=row.portfolio_date,
                unrealized_market_value=_to_float(row.unrealized_market_value) or 0.0,
                realized_market_value=_to_float(row.realized_market_value) or 0.0,
            )
            for row in rows
        ]


class SqlProjectMetadataStore(ProjectMetadataStore):

    def __init__(self, session_factory=AsyncSessionLocal):
        self.session_factory = session_factory

    async def lookup(self, project_ids: Iterable[str]) -> Dict[str, ProjectMeta]:
        ids = sorted(set(project_ids))
        if not ids:
            return {}

        async with self.session_factory() as session:
            result = await session.execute(select(Project).where(Project.project_id.in_(ids)))
            rows = result.scalars().all()

        return {
            row.project_id: ProjectMeta(
                project_id=row.project_id,
                name=row.project_name,
                stack=row.project_stack,
                tag=row.project_tag,
                sub_tag=row.project_sub_tag,
                coingecko_id=row.coingecko_id,
            )
            for row in rows
        }
