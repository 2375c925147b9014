"""
Metrics emission system for observability.

Provides structured metrics for:
- Rollup and drill-down computations
- Upstream store failures (fail-soft degradations)
- Classification gaps

Metrics are emitted to:
1. Python logging (immediate visibility)
2. Redis stream (when a client is attached)
3. In-memory buffer (API aggregation)
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List

from fundmon.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class MetricEvent:
    """Structured metric event."""
    timestamp: datetime
    category: str          # "pipeline", "store", "classification"
    event_type: str        # "rollup_computed", "source_unavailable", etc.
    vehicle_id: Optional[str]
    value: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "category": self.category,
            "event_type": self.event_type,
            "vehicle_id": self.vehicle_id,
            "value": self.value,
            "metadata": self.metadata
        }


class MetricsEmitter:
    """
    Emit structured metrics to multiple destinations.

    Safe for use across concurrent request handlers.
    """

    # Category constants
    CATEGORY_PIPELINE = "pipeline"
    CATEGORY_STORE = "store"
    CATEGORY_CLASSIFICATION = "classification"

    def __init__(self, redis_client=None, buffer_size: int = 1000,
                 stream_name: str = settings.METRICS_STREAM_NAME):
        """
        Initialize metrics emitter.

        Args:
            redis_client: Optional async Redis client for stream publishing
            buffer_size: Max events to keep in memory buffer
            stream_name: Redis stream the events are appended to
        """
        self.redis = redis_client
        self.buffer_size = buffer_size
        self.stream_name = stream_name
        self._buffer: List[MetricEvent] = []
        self._enabled = True

    def set_redis(self, redis_client) -> None:
        """Set Redis client (for lazy initialization)."""
        self.redis = redis_client

    def enable(self) -> None:
        """Enable metrics emission."""
        self._enabled = True

    def disable(self) -> None:
        """Disable metrics emission (for testing)."""
        self._enabled = False

    def _record(
        self,
        category: str,
        event_type: str,
        value: float,
        vehicle_id: Optional[str],
        metadata: Optional[dict],
    ) -> MetricEvent:
        event = MetricEvent(
            timestamp=datetime.now(timezone.utc),
            category=category,
            event_type=event_type,
            vehicle_id=vehicle_id,
            value=value,
            metadata=metadata or {}
        )

        # Log for immediate visibility
        meta_str = f" {metadata}" if metadata else ""
        logger.info(
            f"METRIC [{category}/{event_type}] "
            f"vehicle={vehicle_id} value={value}{meta_str}"
        )

        # Add to buffer (with size limit)
        self._buffer.append(event)
        if len(self._buffer) > self.buffer_size:
            self._buffer = self._buffer[-self.buffer_size:]
        return event

    def emit(
        self,
        category: str,
        event_type: str,
        value: float,
        vehicle_id: Optional[str] = None,
        metadata: Optional[dict] = None
    ) -> Optional[MetricEvent]:
        """
        Emit a metric event to the log and the buffer.

        Used from synchronous engine code; stream publishing happens in emit_async.
        """
        if not self._enabled:
            return None
        return self._record(category, event_type, value, vehicle_id, metadata)

    async def emit_async(
        self,
        category: str,
        event_type: str,
        value: float,
        vehicle_id: Optional[str] = None,
        metadata: Optional[dict] = None
    ) -> Optional[MetricEvent]:
        """Async version of emit that also publishes to the Redis stream."""
        if not self._enabled:
            return None

        event = self._record(category, event_type, value, vehicle_id, metadata)

        if self.redis:
            try:
                await self.redis.xadd(self.stream_name, {
                    "data": json.dumps(event.to_dict())
                })
            except Exception as e:
                logger.warning(f"Failed to publish metric to Redis: {e}")

        return event

    # =========================================================================
    # Convenience methods for common metrics
    # =========================================================================

    async def rollup_computed(self, vehicle_id: str, taxonomy: str,
                              rows: int, positions: int) -> Optional[MetricEvent]:
        return await self.emit_async(
            self.CATEGORY_PIPELINE, "rollup_computed", float(rows),
            vehicle_id=vehicle_id,
            metadata={"taxonomy": taxonomy, "positions": positions}
        )

    async def drilldown_computed(self, vehicle_id: str, taxonomy: str,
                                 label: str, positions: int) -> Optional[MetricEvent]:
        return await self.emit_async(
            self.CATEGORY_PIPELINE, "drilldown_computed", float(positions),
            vehicle_id=vehicle_id,
            metadata={"taxonomy": taxonomy, "label": label}
        )

    async def source_unavailable(self, vehicle_id: Optional[str], operation: str,
                                 error: BaseException) -> Optional[MetricEvent]:
        return await self.emit_async(
            self.CATEGORY_STORE, "source_unavailable", 1.0,
            vehicle_id=vehicle_id,
            metadata={"operation": operation, "error": f"{type(error).__name__}: {error}"}
        )

    def classification_gap(self, taxonomy: str, project_id: str,
                           asset_class: Optional[str], fallback: str) -> Optional[MetricEvent]:
        return self.emit(
            self.CATEGORY_CLASSIFICATION, "classification_gap", 1.0,
            metadata={
                "taxonomy": taxonomy,
                "project_id": project_id,
                "asset_class": asset_class,
                "fallback": fallback,
            }
        )

    # =========================================================================
    # Buffer access
    # =========================================================================

    def get_buffer(self) -> List[MetricEvent]:
        """Get a copy of buffered events."""
        return list(self._buffer)

    def get_summary(self, hours: int = 24) -> dict:
        """Summarize buffered events from the last `hours` hours."""
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        recent = [e for e in self._buffer if e.timestamp >= cutoff]

        by_category: Dict[str, int] = {}
        by_event: Dict[str, int] = {}
        for event in recent:
            by_category[event.category] = by_category.get(event.category, 0) + 1
            key = f"{event.category}/{event.event_type}"
            by_event[key] = by_event.get(key, 0) + 1

        return {
            "period_hours": hours,
            "total_events": len(recent),
            "by_category": by_category,
            "by_event": by_event,
            "sources_unavailable": by_event.get("store/source_unavailable", 0),
            "classification_gaps": by_event.get("classification/classification_gap", 0),
        }

    def clear_buffer(self) -> int:
        """Clear buffer and return count of cleared events."""
        count = len(self._buffer)
        self._buffer = []
        return count


# Global singleton instance
metrics = MetricsEmitter()
