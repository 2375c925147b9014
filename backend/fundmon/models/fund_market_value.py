"""
Point-in-time market value snapshots per (project, asset class).
"""

from sqlalchemy import Column, String, Date, Numeric, Index
from fundmon.core.database import Base
from fundmon.models.base import IdMixin, TimestampMixin


class FundMarketValue(Base, IdMixin, TimestampMixin):
    """
    Market value snapshot for one vehicle position at a portfolio date.

    Several rows for the same (project, asset class, date) are summed by the engine.
    """

    __tablename__ = "fund_market_values"

    vehicle_id = Column(String(64), nullable=False, index=True)
    project_id = Column(String(128), nullable=False, index=True)
    asset_class = Column(String(50), nullable=True)
    portfolio_date = Column(Date, nullable=False, index=True)

    unrealized_market_value = Column(Numeric(20, 4), nullable=True)
    realized_market_value = Column(Numeric(20, 4), nullable=True)

    __table_args__ = (
        Index("ix_fund_market_values_vehicle_date", "vehicle_id", "portfolio_date"),
    )
