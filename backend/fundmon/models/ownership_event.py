"""
Ownership ledger: one row per reported change in cost basis.
"""

from sqlalchemy import Column, String, Date, Numeric, Index
from fundmon.core.database import Base
from fundmon.models.base import IdMixin, TimestampMixin


class OwnershipEvent(Base, IdMixin, TimestampMixin):
    """
    Append-only cost-delta event for a (vehicle, project, asset class).

    Point attributes (ownership %, valuation, established type) are reported
    alongside the delta and read as "last known value" by the engine.
    """

    __tablename__ = "ownership_events"

    vehicle_id = Column(String(64), nullable=False, index=True)
    project_id = Column(String(128), nullable=False, index=True)
    asset_class = Column(String(50), nullable=True)
    date_reported = Column(Date, nullable=False, index=True)
    delta_cost = Column(Numeric(20, 4), nullable=False, default=0)

    outcome_type = Column(String(50), nullable=True)
    ownership_type = Column(String(50), nullable=True)  # Established, Top Up, Divested...
    established_type = Column(String(20), nullable=True)  # Private, Liquid, Established
    overall_ownership_percentage = Column(Numeric(12, 8), nullable=True)
    overall_valuation = Column(Numeric(20, 2), nullable=True)

    __table_args__ = (
        Index("ix_ownership_events_vehicle_date", "vehicle_id", "date_reported"),
    )
