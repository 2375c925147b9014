"""Excluded positions: the rows the overview leaves out."""
from datetime import date

import pytest

from fundmon.engine.excluded import ExcludedPositionsReader
from fundmon.engine.types import CostWindow
from fundmon.services.excluded_positions_service import ExcludedPositionsService
from tests.conftest import (
    PORTFOLIO_DATE,
    VEHICLE_ID,
    InMemoryCostEventStore,
    InMemoryProjectMetadataStore,
    InMemoryValuationSnapshotStore,
    cost_event,
    snapshot,
)


class TestExcludedPositionsService:
    async def test_categories_in_display_order(self, excluded_service):
        rows = await excluded_service.get_excluded_positions(VEHICLE_ID, PORTFOLIO_DATE)
        assert [r.category for r in rows] == [
            "Other Assets", "Cash & Cash Equivalents", "NAV Adjustment", "Flows"
        ]

    async def test_category_values(self, excluded_service):
        rows = {r.category: r for r in await excluded_service.get_excluded_positions(VEHICLE_ID, PORTFOLIO_DATE)}

        other = rows["Other Assets"]
        assert (other.project_count, other.cost, other.unrealized_mv) == (1, 500, 450)

        cash = rows["Cash & Cash Equivalents"]
        # alpha's cash outcome event and the usd-cash snapshot
        assert (cash.project_count, cash.cost, cash.unrealized_mv) == (2, 999, 300)

        assert (rows["NAV Adjustment"].cost, rows["NAV Adjustment"].total_mv) == (0, 10)
        assert rows["Flows"].total_mv == 25

    async def test_details(self, excluded_service):
        details = await excluded_service.get_excluded_position_details(
            VEHICLE_ID, PORTFOLIO_DATE, "Cash & Cash Equivalents"
        )
        assert [(d.project_id, d.cost, d.total_mv) for d in details] == [
            ("usd-cash", 0, 300),
            ("alpha", 999, 0),
        ]

    async def test_unknown_category(self, excluded_service):
        assert await excluded_service.get_excluded_position_details(VEHICLE_ID, PORTFOLIO_DATE, "Bonds") == []

    async def test_totals(self, excluded_service):
        total = await excluded_service.get_excluded_totals(VEHICLE_ID, PORTFOLIO_DATE)
        assert total.category == "Total"
        assert total.project_count == 5
        assert total.cost == 1499
        assert total.unrealized_mv == 785

    async def test_cutoff_applies_to_cost_only(self, excluded_service):
        rows = await excluded_service.get_excluded_positions(
            VEHICLE_ID, PORTFOLIO_DATE, cutoff_date=date(2024, 1, 31)
        )
        other = {r.category: r for r in rows}["Other Assets"]
        assert other.cost == 0
        assert other.unrealized_mv == 450

    async def test_fail_soft(self):
        service = ExcludedPositionsService(
            InMemoryCostEventStore(error=ConnectionError("down")),
            InMemoryValuationSnapshotStore(),
            InMemoryProjectMetadataStore(),
        )
        assert await service.get_excluded_positions("v", PORTFOLIO_DATE) == []
        total = await service.get_excluded_totals("v", PORTFOLIO_DATE)
        assert total.cost == 0 and total.project_count == 0


class TestExcludedPositionsReader:
    def test_other_assets_wins_over_cash(self):
        reader = ExcludedPositionsReader(excluded_project_id="Other Assets", cash_outcome_type="Cash")
        event = cost_event("Other Assets", "Equity", 10, outcome_type="Cash")
        assert reader.cost_category(event) == "Other Assets"

    def test_window_start(self):
        reader = ExcludedPositionsReader()
        events = [
            cost_event("Other Assets", "Equity", 10, date(2023, 1, 1)),
            cost_event("Other Assets", "Equity", 5, date(2024, 2, 1)),
        ]
        window = CostWindow(PORTFOLIO_DATE, start=date(2024, 1, 1))
        [row] = reader.categories(events, [], PORTFOLIO_DATE, window)
        assert row.cost == 5

    def test_snapshots_on_other_dates_are_ignored(self):
        reader = ExcludedPositionsReader()
        rows = reader.categories(
            [], [snapshot("x", "Flows", 7, day=date(2024, 3, 31))], PORTFOLIO_DATE, CostWindow(PORTFOLIO_DATE)
        )
        assert rows == []

    def test_in_scope_rows_are_not_excluded(self):
        reader = ExcludedPositionsReader()
        rows = reader.categories(
            [cost_event("p", "Equity", 10)], [snapshot("p", "Equity", 20)],
            PORTFOLIO_DATE, CostWindow(PORTFOLIO_DATE),
        )
        assert rows == []


@pytest.mark.parametrize("asset_class,category", [
    ("Cash", "Cash & Cash Equivalents"),
    ("NAV Adjustment", "NAV Adjustment"),
    ("Flows", "Flows"),
    ("Equity", None),
])
def test_snapshot_category(asset_class, category):
    assert ExcludedPositionsReader().snapshot_category(snapshot("p", asset_class, 1)) == category
