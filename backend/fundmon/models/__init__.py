# Base
from fundmon.models.base import TimestampMixin, IdMixin

# Ledger & Valuations
from fundmon.models.ownership_event import OwnershipEvent
from fundmon.models.fund_market_value import FundMarketValue

# Reference Data
from fundmon.models.project import Project

__all__ = [
    "TimestampMixin",
    "IdMixin",
    "OwnershipEvent",
    "FundMarketValue",
    "Project",
]
