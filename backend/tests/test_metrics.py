"""Metrics emitter: buffer, stream publishing and summaries."""
import json
from unittest.mock import AsyncMock

from redis.exceptions import ConnectionError as RedisConnectionError

from fundmon.core import redis as redis_module
from fundmon.core.metrics import MetricsEmitter


class TestMetricsEmitter:
    def test_emit_buffers_event(self):
        emitter = MetricsEmitter()
        event = emitter.emit("pipeline", "rollup_computed", 4, vehicle_id="fund-i")
        assert event is not None
        assert emitter.get_buffer() == [event]
        assert event.to_dict()["vehicle_id"] == "fund-i"

    def test_disabled_emits_nothing(self):
        emitter = MetricsEmitter()
        emitter.disable()
        assert emitter.emit("pipeline", "rollup_computed", 1) is None
        assert emitter.get_buffer() == []

    def test_buffer_is_bounded(self):
        emitter = MetricsEmitter(buffer_size=3)
        for i in range(5):
            emitter.emit("pipeline", "rollup_computed", i)
        assert [e.value for e in emitter.get_buffer()] == [2, 3, 4]

    async def test_emit_async_publishes_to_stream(self):
        redis = AsyncMock()
        emitter = MetricsEmitter(redis_client=redis, stream_name="test-stream")
        await emitter.rollup_computed("fund-i", "moic_bucket", rows=6, positions=6)

        redis.xadd.assert_awaited_once()
        stream, fields = redis.xadd.await_args.args
        assert stream == "test-stream"
        assert json.loads(fields["data"])["event_type"] == "rollup_computed"

    async def test_stream_failure_is_logged_not_raised(self):
        redis = AsyncMock()
        redis.xadd.side_effect = ConnectionError("redis down")
        emitter = MetricsEmitter(redis_client=redis)
        event = await emitter.source_unavailable("fund-i", "get_rollup", TimeoutError("slow"))
        assert event.metadata["error"] == "TimeoutError: slow"
        assert len(emitter.get_buffer()) == 1

    async def test_summary(self):
        emitter = MetricsEmitter()
        await emitter.source_unavailable("a", "get_rollup", OSError("x"))
        await emitter.drilldown_computed("a", "asset_type", "Liquid", 2)
        emitter.classification_gap("asset_type", "p", None, "Other(Unknown)")

        summary = emitter.get_summary()
        assert summary["total_events"] == 3
        assert summary["sources_unavailable"] == 1
        assert summary["classification_gaps"] == 1
        assert summary["by_category"] == {"store": 1, "pipeline": 1, "classification": 1}

    def test_clear_buffer(self):
        emitter = MetricsEmitter()
        emitter.emit("pipeline", "rollup_computed", 1)
        assert emitter.clear_buffer() == 1
        assert emitter.get_buffer() == []


class TestMetricsStreamConnection:
    async def test_unreachable_redis_disables_stream(self, monkeypatch):
        client = AsyncMock()
        client.ping.side_effect = RedisConnectionError("refused")
        monkeypatch.setattr(redis_module, "metrics_redis", client)

        assert await redis_module.connect_metrics_stream() is None
        client.aclose.assert_awaited_once()
        assert redis_module.metrics_redis is None

    async def test_reachable_redis_is_returned(self, monkeypatch):
        client = AsyncMock()
        monkeypatch.setattr(redis_module, "metrics_redis", client)
        assert await redis_module.connect_metrics_stream() is client
