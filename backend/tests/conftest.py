"""
Shared fixtures: in-memory stores and a sample vehicle.

The sample vehicle "fund-i" at 2024-06-30 holds:

    project  asset class  cost  unrealized  realized  notes
    alpha    Equity        100        1000         0  Grand Slams, Pre-Seed (20M)
    beta     Equity         60         120         0  Doubles/Triples at project grain
    beta     Tokens         40          80         0  TGEd, Series B (160M)
    delta    Tokens          0          50         0  no cost events, no metadata
    epsilon  Equity        200         150         0  Equity Downrounds, Growth (300M)
    gamma    Tokens         50           0         0  Write Offs, Non-TGEd
    zeta     Tokens        100          60        40  Liquid, Series A (100M)

plus excluded rows (Other Assets, cash, NAV adjustment, flows), a snapshot on
another date and a cost event after the portfolio date.
"""
import itertools
from datetime import date
from typing import Dict, Iterable, List, Optional

import pytest

from fundmon.core.metrics import metrics
from fundmon.engine.types import CostEvent, ProjectMeta, ValuationSnapshot
from fundmon.services.excluded_positions_service import ExcludedPositionsService
from fundmon.services.overview_service import OverviewService
from fundmon.services.soi_service import SOIService
from fundmon.services.stores.base import (
    CostEventStore,
    ProjectMetadataStore,
    ValuationSnapshotStore,
)

VEHICLE_ID = "fund-i"
PORTFOLIO_DATE = date(2024, 6, 30)

_row_ids = itertools.count(1)


def cost_event(
    project_id: str,
    asset_class: Optional[str],
    delta_cost: float,
    day: date = date(2024, 1, 15),
    **kwargs,
) -> CostEvent:
    return CostEvent(
        project_id=project_id,
        asset_class=asset_class,
        date_reported=day,
        delta_cost=delta_cost,
        row_id=kwargs.pop("row_id", next(_row_ids)),
        **kwargs,
    )


def snapshot(
    project_id: str,
    asset_class: Optional[str],
    unrealized: float,
    realized: float = 0.0,
    day: date = PORTFOLIO_DATE,
) -> ValuationSnapshot:
    return ValuationSnapshot(
        project_id=project_id,
        asset_class=asset_class,
        portfolio_date=day,
        unrealized_market_value=unrealized,
        realized_market_value=realized,
    )


# =============================================================================
# In-memory stores
# =============================================================================

class InMemoryCostEventStore(CostEventStore):

    def __init__(self, events: Optional[Dict[str, List[CostEvent]]] = None,
                 error: Optional[Exception] = None):
        self.events = events or {}
        self.error = error
        self.calls = []

    async def query(self, vehicle_id: str, cutoff_date: date) -> List[CostEvent]:
        self.calls.append((vehicle_id, cutoff_date))
        if self.error is not None:
            raise self.error
        return [e for e in self.events.get(vehicle_id, []) if e.date_reported <= cutoff_date]


class InMemoryValuationSnapshotStore(ValuationSnapshotStore):

    def __init__(self, snapshots: Optional[Dict[str, List[ValuationSnapshot]]] = None,
                 error: Optional[Exception] = None):
        self.snapshots = snapshots or {}
        self.error = error
        self.calls = []
        self.history_calls = []

    async def query(self, vehicle_id: str, portfolio_date: date) -> List[ValuationSnapshot]:
        self.calls.append((vehicle_id, portfolio_date))
        if self.error is not None:
            raise self.error
        return [s for s in self.snapshots.get(vehicle_id, []) if s.portfolio_date == portfolio_date]

    async def history(self, vehicle_id: str, end_date: date) -> List[ValuationSnapshot]:
        self.history_calls.append((vehicle_id, end_date))
        if self.error is not None:
            raise self.error
        rows = [s for s in self.snapshots.get(vehicle_id, []) if s.portfolio_date <= end_date]
        return sorted(rows, key=lambda s: s.portfolio_date)


class InMemoryProjectMetadataStore(ProjectMetadataStore):

    def __init__(self, projects: Optional[Dict[str, ProjectMeta]] = None):
        self.projects = projects or {}

    async def lookup(self, project_ids: Iterable[str]) -> Dict[str, ProjectMeta]:
        return {pid: self.projects[pid] for pid in project_ids if pid in self.projects}


# =============================================================================
# Sample vehicle
# =============================================================================

def sample_cost_events() -> List[CostEvent]:
    return [
        cost_event("alpha", "Equity", 60, date(2024, 1, 10), ownership_type="Established",
                   established_type="Private", overall_ownership_percentage=1.0,
                   overall_valuation=20_000_000),
        cost_event("alpha", "Equity", 40, date(2024, 3, 1), ownership_type="Top Up",
                   overall_ownership_percentage=1.5),
        cost_event("alpha", "Equity", 999, date(2024, 2, 1), outcome_type="Cash"),
        cost_event("alpha", "Equity", 1000, date(2024, 9, 1), overall_valuation=99_000_000),
        cost_event("beta", "Equity", 60, date(2024, 2, 1), ownership_type="Established",
                   established_type="Private", overall_ownership_percentage=0.5,
                   overall_valuation=30_000_000),
        cost_event("beta", "Tokens", 40, date(2024, 2, 1), ownership_type="Established",
                   established_type="Private", overall_valuation=160_000_000),
        cost_event("epsilon", "Equity", 200, date(2023, 11, 5), ownership_type="Established",
                   established_type="Private", overall_ownership_percentage=2.5,
                   overall_valuation=300_000_000),
        cost_event("gamma", "Tokens", 50, date(2023, 6, 1), ownership_type="Established",
                   established_type="Private"),
        cost_event("zeta", "Tokens", 100, date(2024, 4, 1), ownership_type="Established",
                   established_type="Liquid", overall_valuation=100_000_000),
        cost_event("Other Assets", "Equity", 500, date(2024, 2, 1)),
    ]


def sample_snapshots() -> List[ValuationSnapshot]:
    return [
        snapshot("alpha", "Equity", 1000),
        snapshot("alpha", "Equity", 5000, day=date(2024, 3, 31)),
        snapshot("alpha", "Flows", 25),
        snapshot("beta", "Equity", 120),
        snapshot("beta", "Tokens", 80),
        snapshot("delta", "Tokens", 50),
        snapshot("epsilon", "Equity", 150),
        snapshot("gamma", "Tokens", 0),
        snapshot("zeta", "Tokens", 60, 40),
        snapshot("Other Assets", "Equity", 450),
        snapshot("usd-cash", "Cash", 300),
        snapshot("nav-adj", "NAV Adjustment", 10),
    ]


def sample_metadata() -> Dict[str, ProjectMeta]:
    return {
        "alpha": ProjectMeta("alpha", name="Alpha Labs", stack="DeFi", tag="Lending"),
        "beta": ProjectMeta("beta", name="Beta Network", stack="Infrastructure",
                            tag="L1", coingecko_id="beta-token"),
        "epsilon": ProjectMeta("epsilon", name="Epsilon", stack="DeFi", tag="DEX"),
        "gamma": ProjectMeta("gamma", name="Gamma", stack=None, tag="Gaming"),
        "zeta": ProjectMeta("zeta", name="Zeta", stack="Infrastructure", tag="L1",
                            coingecko_id="zeta"),
    }


@pytest.fixture(autouse=True)
def clean_metrics():
    metrics.enable()
    metrics.clear_buffer()
    yield
    metrics.clear_buffer()


@pytest.fixture()
def stores():
    return (
        InMemoryCostEventStore({VEHICLE_ID: sample_cost_events()}),
        InMemoryValuationSnapshotStore({VEHICLE_ID: sample_snapshots()}),
        InMemoryProjectMetadataStore(sample_metadata()),
    )


@pytest.fixture()
def overview_service(stores):
    return OverviewService(*stores, strict=True)


@pytest.fixture()
def soi_service(stores):
    return SOIService(*stores, strict=True)


@pytest.fixture()
def excluded_service(stores):
    return ExcludedPositionsService(*stores, strict=True)
