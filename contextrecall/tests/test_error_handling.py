"""Tests for failure isolation, health tracking and metrics."""

import asyncio

import pytest

from contextrecall.engine.error_handling import (
    IsolatedExecutor, ErrorAggregator, ErrorSeverity, ServiceState, StoreError,
    classify_severity
)
from contextrecall.engine.metrics import MetricsCollector, LatencyHistogram


async def ok(value):
    return value


async def fail():
    raise StoreError("disk I/O error")


async def cancelled():
    raise asyncio.CancelledError()


class TestIsolatedExecutor:
    """Errors become fallbacks; cancellation does not."""

    @pytest.mark.asyncio
    async def test_success_passes_through(self):
        executor = IsolatedExecutor()
        assert await executor.execute("store.clipboard", ok, [1], fallback=[]) == [1]
        health = executor.aggregator.service_health["store.clipboard"]
        assert health.state == ServiceState.HEALTHY
        assert health.success_count == 1
        assert executor.get_health_status()["last_error"] is None

    @pytest.mark.asyncio
    async def test_failure_returns_fallback(self):
        executor = IsolatedExecutor()
        assert await executor.execute("store.clipboard", fail, fallback=[]) == []

        summary = executor.get_health_status()
        assert summary["total_errors"] == 1
        assert summary["top_errors"][0] == {"error": "store.clipboard:StoreError", "count": 1}
        assert summary["last_error"]["service"] == "store.clipboard"
        assert summary["last_error"]["error_type"] == "StoreError"
        assert summary["last_error"]["severity"] == ErrorSeverity.HIGH.value

    @pytest.mark.asyncio
    async def test_failure_counted_in_metrics(self):
        metrics = MetricsCollector()
        executor = IsolatedExecutor(metrics=metrics)
        await executor.execute("store.searches", fail, fallback=[])
        await executor.execute("store.searches", ok, [], fallback=[])
        assert metrics.get_summary()["counters"] == {"store.failure": 1}

    @pytest.mark.asyncio
    async def test_cancellation_not_swallowed(self):
        executor = IsolatedExecutor()
        with pytest.raises(asyncio.CancelledError):
            await executor.execute("store.clipboard", cancelled, fallback=[])
        assert executor.get_health_status()["total_errors"] == 0

    @pytest.mark.asyncio
    async def test_recovery_after_failures(self):
        executor = IsolatedExecutor()
        for _ in range(4):
            await executor.execute("store.searches", fail, fallback=None)
        health = executor.aggregator.service_health["store.searches"]
        assert health.state == ServiceState.UNHEALTHY
        assert health.consecutive_failures == 4

        for _ in range(40):
            await executor.execute("store.searches", ok, 1, fallback=None)
        assert health.consecutive_failures == 0
        assert health.state == ServiceState.HEALTHY


class TestSeverity:

    def test_classification(self):
        assert classify_severity(MemoryError()) == ErrorSeverity.CRITICAL
        assert classify_severity(StoreError("x")) == ErrorSeverity.HIGH
        assert classify_severity(PermissionError()) == ErrorSeverity.MEDIUM
        assert classify_severity(ValueError()) == ErrorSeverity.LOW

    def test_aggregator_reset(self):
        aggregator = ErrorAggregator()
        aggregator.record_success("backend")
        aggregator.reset()
        assert aggregator.get_error_summary()["service_health"] == {}


class TestMetrics:

    def test_histogram_percentiles(self):
        hist = LatencyHistogram("retrieve.total")
        for latency in (0.5, 3, 8, 20, 2000):
            hist.record(latency)
        assert hist.total_count == 5
        assert hist.get_percentile(50) == 10
        assert hist.get_percentile(99) == 5000

    def test_timer_and_summary(self):
        metrics = MetricsCollector()
        with metrics.timer("recall.answer"):
            pass
        metrics.increment_counter("embedding.cache_hit", 3)

        summary = metrics.get_summary()
        assert summary["latencies"]["recall.answer"]["count"] == 1
        assert "retrieve.total" not in summary["latencies"]
        assert summary["counters"] == {"embedding.cache_hit": 3}

        metrics.reset()
        assert metrics.get_summary() == {"latencies": {}, "counters": {}}
