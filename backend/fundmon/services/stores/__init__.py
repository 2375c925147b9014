from typing import NamedTuple
from fundmon.services.stores.base import CostEventStore, ValuationSnapshotStore, ProjectMetadataStore
from fundmon.services.stores.sql import (
    SqlCostEventStore,
    SqlValuationSnapshotStore,
    SqlProjectMetadataStore,
)


class Stores(NamedTuple):
    cost_events: CostEventStore
    snapshots: ValuationSnapshotStore
    metadata: ProjectMetadataStore


def get_stores(session_factory=None) -> Stores:
    """Factory for the SQL-backed stores."""
    kwargs = {"session_factory": session_factory} if session_factory is not None else {}
    return Stores(
        cost_events=SqlCostEventStore(**kwargs),
        snapshots=SqlValuationSnapshotStore(**kwargs),
        metadata=SqlProjectMetadataStore(**kwargs),
    )
