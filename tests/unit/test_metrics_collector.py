"""
Unit tests for the metrics collector.
"""

import pytest

from predictive_optimization.monitoring import (
    AggregationType,
    AlertSeverity,
    ApplicationMetricsRecorder,
    DatastoreSource,
    MetricSample,
    MetricsCollector,
    SystemResourceSource,
    TimeRange,
)
from predictive_optimization.monitoring.models import (
    AlertCondition,
    AlertOperator,
    CPUMetrics,
    MemoryMetrics,
    NetworkMetrics,
    TRACKED_METRICS,
)


class FixedSystemSource(SystemResourceSource):
    """Host readings without touching psutil."""

    def __init__(self, cpu: float = 0.5, memory: float = 0.6):
        self.cpu = cpu
        self.memory = memory

    async def collect_cpu(self):
        return CPUMetrics(usage=self.cpu, load_average=[1.0, 0.5, 0.2], cores=4, processes=100)

    async def collect_memory(self):
        return MemoryMetrics(used=6.0, total=10.0, available=4.0, usage=self.memory)

    async def collect_network(self):
        return NetworkMetrics(bytes_in=1000.0, bytes_out=500.0)


class BrokenDatastoreSource(DatastoreSource):
    async def collect(self):
        raise ConnectionError("redis down")


@pytest.fixture
def fixed_collector(store):
    return MetricsCollector(
        store,
        system_source=FixedSystemSource(),
        datastore_source=BrokenDatastoreSource(store),
    )


class TestSnapshot:
    """Test snapshot collection."""

    @pytest.mark.asyncio
    async def test_snapshot_persists_tracked_samples(self, fixed_collector, store):
        """Test that every tracked metric gets a sample."""
        snapshot = await fixed_collector.collect_snapshot()

        assert snapshot.cpu.usage == 0.5
        assert fixed_collector.latest_snapshot() is snapshot
        assert len(TRACKED_METRICS) == 14

        for name in TRACKED_METRICS:
            samples = await store.range_samples(name, snapshot.timestamp - 1, snapshot.timestamp + 1)
            assert len(samples) == 1, name

    @pytest.mark.asyncio
    async def test_failed_sub_collector_uses_defaults(self, fixed_collector):
        """Test that a failing datastore reading becomes zeros."""
        snapshot = await fixed_collector.collect_snapshot()

        assert snapshot.datastore.memory_usage == 0.0
        assert snapshot.datastore.connected_clients == 0
        assert snapshot.memory.usage == 0.6

    @pytest.mark.asyncio
    async def test_application_metrics(self, store):
        """Test that recorded requests show up in the snapshot."""
        recorder = ApplicationMetricsRecorder(window_seconds=10)
        for latency in (10, 20, 30, 40):
            recorder.record_request(latency)
        recorder.record_request(50, error=True)
        recorder.set_active_users(7)

        collector = MetricsCollector(
            store,
            system_source=FixedSystemSource(),
            datastore_source=BrokenDatastoreSource(store),
            application_recorder=recorder,
        )
        snapshot = await collector.collect_snapshot()

        assert snapshot.application.requests_per_second == 0.5
        assert snapshot.application.error_rate == 0.2
        assert snapshot.application.active_users == 7
        assert snapshot.application.response_time.avg == 30


class TestQueries:
    """Test range queries."""

    @pytest.mark.asyncio
    async def test_query_range_buckets(self, collector):
        """Test averaging into interval buckets."""
        base = 1_000_000_200.0
        await collector.add_samples([
            MetricSample("cpu.usage", 0.2, base),
            MetricSample("cpu.usage", 0.4, base + 10),
            MetricSample("cpu.usage", 0.9, base + 300),
        ])

        aggregation = await collector.query_range("cpu.usage", TimeRange(base - 1, base + 400, interval=300))

        assert aggregation.values == pytest.approx([0.3, 0.9])
        assert aggregation.summary.count == 2

    @pytest.mark.asyncio
    async def test_query_range_max(self, collector):
        base = 1_000_000_200.0
        await collector.add_samples([
            MetricSample("cpu.usage", 0.2, base),
            MetricSample("cpu.usage", 0.4, base + 10),
        ])

        aggregation = await collector.query_range(
            "cpu.usage", TimeRange(base - 1, base + 100, interval=300), AggregationType.MAX
        )

        assert aggregation.values == [0.4]

    @pytest.mark.asyncio
    async def test_empty_query(self, collector):
        aggregation = await collector.query_range("unknown.metric", TimeRange.last(3600))

        assert aggregation.values == []
        assert aggregation.summary.count == 0

    @pytest.mark.asyncio
    async def test_history(self, collector, sample_series, store):
        await sample_series(store, "memory.usage", [0.1, 0.2, 0.3])

        assert await collector.history("memory.usage", 3600) == pytest.approx([0.1, 0.2, 0.3])


class TestAlerts:
    """Test threshold alerts."""

    @pytest.mark.asyncio
    async def test_threshold_raises_alert(self, collector):
        """Test that a breached threshold raises and persists an alert."""
        condition = AlertCondition(operator=AlertOperator.GT)

        alert = await collector.check_threshold("cpu.usage", 0.95, condition, 0.9, AlertSeverity.HIGH)

        assert alert is not None
        assert alert.current_value == 0.95
        assert [a.id for a in await collector.list_active_alerts()] == [alert.id]

    @pytest.mark.asyncio
    async def test_threshold_not_breached(self, collector):
        condition = AlertCondition(operator=AlertOperator.LTE)

        assert await collector.check_threshold("cpu.usage", 0.95, condition, 0.9, AlertSeverity.LOW) is None

    @pytest.mark.asyncio
    async def test_resolve_alert(self, collector):
        """Test that resolved alerts leave the active list and resolving twice is harmless."""
        condition = AlertCondition(operator=AlertOperator.GTE)
        alert = await collector.check_threshold("memory.usage", 0.9, condition, 0.9, AlertSeverity.MEDIUM)

        resolved = await collector.resolve_alert(alert.id)
        again = await collector.resolve_alert(alert.id)

        assert resolved.resolved
        assert again.resolved_at == resolved.resolved_at
        assert await collector.list_active_alerts() == []

    def test_operators(self):
        evaluate = MetricsCollector.evaluate_alert_condition

        assert evaluate(1.0, AlertCondition(operator=AlertOperator.EQ), 1.0)
        assert evaluate(1.0, AlertCondition(operator=AlertOperator.NE), 2.0)
        assert evaluate(1.0, AlertCondition(operator=AlertOperator.LT), 2.0)
        assert not evaluate(3.0, AlertCondition(operator=AlertOperator.LT), 2.0)
