"""
Metrics API endpoint for observability.

Provides:
- Summary statistics over the in-memory buffer
- Recent metric events with filtering
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from fundmon.core.metrics import metrics

router = APIRouter()


class MetricsSummary(BaseModel):
    """Summary of metrics over a time period."""
    period_hours: int
    total_events: int
    by_category: dict
    by_event: dict
    sources_unavailable: int
    classification_gaps: int


class MetricEventResponse(BaseModel):
    timestamp: str
    category: str
    event_type: str
    vehicle_id: Optional[str]
    value: float
    metadata: dict


@router.get("/summary", response_model=MetricsSummary)
async def get_metrics_summary(
    hours: int = Query(default=24, ge=1, le=168, description="Hours of history to include")
) -> MetricsSummary:
    return MetricsSummary(**metrics.get_summary(hours=hours))


@router.get("/events", response_model=List[MetricEventResponse])
async def get_recent_events(
    category: Optional[str] = Query(default=None, description="Filter by category"),
    event_type: Optional[str] = Query(default=None, description="Filter by event type"),
    vehicle_id: Optional[str] = Query(default=None, description="Filter by vehicle"),
    limit: int = Query(default=100, ge=1, le=1000, description="Max events to return"),
    hours: int = Query(default=24, ge=1, le=168, description="Hours of history"),
) -> List[MetricEventResponse]:
    """Most recent events first."""
    cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)

    events = []
    for event in reversed(metrics.get_buffer()):
        if event.timestamp < cutoff:
            continue
        if category and event.category != category:
            continue
        if event_type and event.event_type != event_type:
            continue
        if vehicle_id and event.vehicle_id != vehicle_id:
            continue
        events.append(MetricEventResponse(**event.to_dict()))
        if len(events) >= limit:
            break
    return events
