from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Iterable, List

from fundmon.engine.types import CostEvent, ProjectMeta, ValuationSnapshot


class CostEventStore(ABC):
    """Read-only source of cost-delta events."""

    @abstractmethod
    async def query(self, vehicle_id: str, cutoff_date: date) -> List[CostEvent]:
        """
        Every event of the vehicle with date_reported <= cutoff_date.
        Excluded projects and cash outcomes are included; readers filter them.
        """
        pass


class ValuationSnapshotStore(ABC):
    """Read-only source of market value snapshots."""

    @abstractmethod
    async def query(self, vehicle_id: str, portfolio_date: date) -> List[ValuationSnapshot]:
        """Every snapshot row of the vehicle at exactly portfolio_date."""
        pass

    @abstractmethod
    async def history(self, vehicle_id: str, end_date: date) -> List[ValuationSnapshot]:
        """Every snapshot row of the vehicle with portfolio_date <= end_date."""
        pass


class ProjectMetadataStore(ABC):

    @abstractmethod
    async def lookup(self, project_ids: Iterable[str]) -> Dict[str, ProjectMeta]:
        """Metadata for known project ids; unknown ids are absent."""
        pass
