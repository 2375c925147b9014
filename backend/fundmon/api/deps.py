"""FastAPI dependencies wiring the services to the SQL stores."""
from fundmon.services.excluded_positions_service import ExcludedPositionsService
from fundmon.services.overview_service import OverviewService
from fundmon.services.soi_service import SOIService
from fundmon.services.stores import get_stores


def get_overview_service() -> OverviewService:
    stores = get_stores()
    return OverviewService(stores.cost_events, stores.snapshots, stores.metadata)


def get_soi_service() -> SOIService:
    stores = get_stores()
    return SOIService(stores.cost_events, stores.snapshots, stores.metadata)


def get_excluded_positions_service() -> ExcludedPositionsService:
    stores = get_stores()
    return ExcludedPositionsService(stores.cost_events, stores.snapshots, stores.metadata)
