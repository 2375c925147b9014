from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.orm import declarative_mixin


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@declarative_mixin
class TimestampMixin:
    """Load bookkeeping; the engine itself never reads these columns."""
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


@declarative_mixin
class IdMixin:
    # Also the deterministic tie-break between same-day ledger rows
    id = Column(Integer, primary_key=True, autoincrement=True)
