"""
Unit tests for the anomaly detector.
"""

import pytest

from predictive_optimization.core.exceptions import InvalidStateError, RecordNotFoundError
from predictive_optimization.detection import (
    Anomaly,
    AnomalyDetector,
    AnomalySeverity,
    AnomalyStatus,
    AnomalyType,
    DetectionModelType,
    RootCauseCategory,
)
from predictive_optimization.detection.anomaly_detector import (
    ANOMALY_KIND,
    current_correlation,
    root_cause_category,
    z_score_severity,
)
from predictive_optimization.monitoring import SystemMetrics
from predictive_optimization.monitoring.models import ApplicationMetrics, LatencyMetrics


class TestScoring:
    """Test z-score and rule-based scoring."""

    def test_severity_buckets(self):
        assert z_score_severity(4.5) is AnomalySeverity.CRITICAL
        assert z_score_severity(3.5) is AnomalySeverity.HIGH
        assert z_score_severity(2.7) is AnomalySeverity.MEDIUM
        assert z_score_severity(1.0) is AnomalySeverity.LOW

    def test_drop(self, detector):
        """Test a value far below the mean."""
        model = detector.get_or_create_model("redis.hit_rate")
        history = [0.9, 0.92, 0.88, 0.91, 0.89, 0.9, 0.9, 0.91, 0.89, 0.9]

        result = AnomalyDetector.score(model, 0.1, history)

        assert result.is_anomaly
        assert result.anomaly_type is AnomalyType.DROP
        assert result.confidence == 1.0

    def test_short_history_never_flags(self, detector):
        model = detector.get_or_create_model("cpu.usage")

        result = AnomalyDetector.score(model, 100.0, [0.1] * 9)

        assert not result.is_anomaly

    def test_rule_based_error_rate(self, detector):
        """Test the fixed error-rate rule."""
        model = detector.get_or_create_model("application.error_rate")
        assert model.model_type is DetectionModelType.RULE_BASED

        result = AnomalyDetector.score(model, 0.2, [0.01] * 10)

        assert result.is_anomaly
        assert result.anomaly_type is AnomalyType.SPIKE
        assert result.severity is AnomalySeverity.CRITICAL
        assert result.deviation == pytest.approx(0.15)

    def test_rule_based_needs_history(self, detector):
        model = detector.get_or_create_model("application.error_rate")

        assert not AnomalyDetector.score(model, 0.2, [0.01] * 3).is_anomaly


class TestDetect:
    """Test detection over stored history."""

    @pytest.mark.asyncio
    async def test_spike_already_recorded(self, detector, store, sample_series):
        """Test that 500 after a flat 50 series is critical even once the 500 is stored."""
        await sample_series(store, "application.response_time.avg", [50.0] * 10)
        await store.add_sample("application.response_time.avg", 500.0)

        anomalies = await detector.detect({"application.response_time.avg": 500.0})

        assert len(anomalies) == 1
        anomaly = anomalies[0]
        assert anomaly.anomaly_type is AnomalyType.SPIKE
        assert anomaly.severity is AnomalySeverity.CRITICAL
        assert anomaly.expected_value == 50.0
        assert anomaly.root_cause is not None
        assert anomaly.impact.operational_cost.total_cost == pytest.approx(1700)

        stored = await store.require(ANOMALY_KIND, anomaly.id, Anomaly)
        assert stored.status is AnomalyStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_collected_snapshot_is_outside_its_baseline(self, detector, collector, store, sample_series):
        """Test the collect-then-detect order of a real cycle."""
        await sample_series(store, "application.response_time.avg", [50.0] * 10)
        snapshot = SystemMetrics(application=ApplicationMetrics(response_time=LatencyMetrics(avg=500.0)))
        await collector.add_samples(snapshot.to_samples())

        anomalies = await detector.detect(snapshot)

        assert [(a.metric_name, a.severity) for a in anomalies] == [
            ("application.response_time.avg", AnomalySeverity.CRITICAL),
        ]
        assert anomalies[0].expected_value == 50.0

    @pytest.mark.asyncio
    async def test_normal_value_is_not_flagged(self, detector, store, sample_series):
        await sample_series(store, "cpu.usage", [0.5, 0.52, 0.48, 0.5, 0.51, 0.49, 0.5, 0.5, 0.52, 0.48])

        assert await detector.detect({"cpu.usage": 0.5}) == []

    @pytest.mark.asyncio
    async def test_cpu_anomaly_recommends_scaling(self, detector, store, sample_series):
        await sample_series(store, "cpu.usage", [0.29, 0.31] * 6)

        anomalies = await detector.detect({"cpu.usage": 0.95})

        assert anomalies[0].root_cause.category is RootCauseCategory.RESOURCE_EXHAUSTION
        assert anomalies[0].recommendations[0].title == "Scale CPU Resources"


class TestCorrelationBreaks:
    """Test correlation break detection."""

    ENOUGH_HISTORY = {"cpu.usage": 10, "application.response_time.avg": 10}

    def test_break_detected(self, detector):
        breaks = detector.detect_correlation_breaks({
            "cpu.usage": 0.1,
            "application.response_time.avg": 0.1,
        }, self.ENOUGH_HISTORY)

        assert len(breaks) == 1
        assert breaks[0].metric_name == "cpu.usage:application.response_time.avg"
        assert breaks[0].anomaly_type is AnomalyType.CORRELATION_BREAK
        assert breaks[0].expected_value == 0.7

    def test_consistent_pair(self, detector):
        assert detector.detect_correlation_breaks({
            "cpu.usage": 0.9,
            "application.response_time.avg": 200.0,
        }, self.ENOUGH_HISTORY) == []

    def test_zero_readings_are_skipped(self, detector):
        assert detector.detect_correlation_breaks({
            "cpu.usage": 0.0,
            "application.response_time.avg": 0.1,
        }, self.ENOUGH_HISTORY) == []

    def test_short_history_on_either_side_is_skipped(self, detector):
        values = {"cpu.usage": 0.1, "application.response_time.avg": 0.1}

        assert detector.detect_correlation_breaks(values, {"cpu.usage": 10, "application.response_time.avg": 9}) == []
        assert detector.detect_correlation_breaks(values, {"cpu.usage": 10}) == []

    def test_current_correlation_is_bounded(self):
        assert current_correlation(1000.0, 1000.0) == 1.0

    @pytest.mark.asyncio
    async def test_pair_without_history_is_not_flagged(self, detector):
        """Test that a correlated pair with no history never reports a break."""
        anomalies = await detector.detect({"memory.usage": 0.5, "redis.memory_usage": 0.5})

        assert anomalies == []
        assert await detector.list_active_anomalies() == []

    @pytest.mark.asyncio
    async def test_open_break_is_not_duplicated(self, detector, store, sample_series):
        """Test that an active break for the same pair is not raised again."""
        await sample_series(store, "cpu.usage", [0.1] * 12)
        await sample_series(store, "application.response_time.avg", [0.1] * 12)
        values = {"cpu.usage": 0.1, "application.response_time.avg": 0.1}

        first = await detector.detect(values)
        second = await detector.detect(values)

        assert [a.anomaly_type for a in first] == [AnomalyType.CORRELATION_BREAK]
        assert second == []


class TestLifecycle:
    """Test anomaly state transitions."""

    @pytest.fixture
    async def anomaly(self, detector, store, sample_series):
        await sample_series(store, "cpu.usage", [0.29, 0.31] * 6)
        detector.initialize_default_models()
        anomalies = await detector.detect({"cpu.usage": 0.95})
        return anomalies[0]

    @pytest.mark.asyncio
    async def test_resolve(self, detector, anomaly, store):
        """Test resolving an anomaly and its feedback on precision."""
        before = detector.models.get("cpu.usage").accuracy.precision

        resolved = await detector.resolve_anomaly(anomaly.id, "Scaled up")

        assert resolved.status is AnomalyStatus.RESOLVED
        assert resolved.resolved_at is not None
        assert detector.models.get("cpu.usage").accuracy.precision == pytest.approx(before + 0.02)
        assert 0 < await store.ttl(ANOMALY_KIND, anomaly.id) <= 7 * 24 * 3600
        assert await detector.list_active_anomalies() == []

    @pytest.mark.asyncio
    async def test_resolve_is_idempotent(self, detector, anomaly):
        first = await detector.resolve_anomaly(anomaly.id, "Scaled up")
        second = await detector.resolve_anomaly(anomaly.id, "Something else")

        assert second.resolution == "Scaled up"
        assert second.resolved_at == first.resolved_at

    @pytest.mark.asyncio
    async def test_false_positive(self, detector, anomaly):
        resolved = await detector.resolve_anomaly(anomaly.id, "False positive, deploy noise")

        assert resolved.status is AnomalyStatus.FALSE_POSITIVE

    @pytest.mark.asyncio
    async def test_suppress_lowers_recall(self, detector, anomaly):
        before = detector.models.get("cpu.usage").accuracy.recall

        suppressed = await detector.suppress_anomaly(anomaly.id, "maintenance window")

        assert suppressed.status is AnomalyStatus.SUPPRESSED
        assert detector.models.get("cpu.usage").accuracy.recall == pytest.approx(before - 0.01)

    @pytest.mark.asyncio
    async def test_investigate(self, detector, anomaly):
        """Test that investigating keeps the anomaly active."""
        investigating = await detector.investigate_anomaly(anomaly.id)

        assert investigating.status is AnomalyStatus.INVESTIGATING
        assert [a.id for a in await detector.list_active_anomalies()] == [anomaly.id]

    @pytest.mark.asyncio
    async def test_investigate_resolved_fails(self, detector, anomaly):
        await detector.resolve_anomaly(anomaly.id, "done")

        with pytest.raises(InvalidStateError):
            await detector.investigate_anomaly(anomaly.id)

    @pytest.mark.asyncio
    async def test_unknown_anomaly(self, detector):
        with pytest.raises(RecordNotFoundError):
            await detector.resolve_anomaly("missing", "n/a")


class TestModels:
    """Test model management and feedback."""

    def test_default_models(self, detector):
        assert detector.initialize_default_models() == 5
        assert detector.initialize_default_models() == 0
        assert detector.models.get("redis.memory_usage").parameters["threshold"] == 3.0

    @pytest.mark.asyncio
    async def test_models_round_trip(self, detector, store, collector):
        detector.initialize_default_models()
        await detector.models.save()

        reloaded = AnomalyDetector(store, collector)
        assert await reloaded.models.load() == 5
        assert reloaded.models.get("application.error_rate").model_type is DetectionModelType.RULE_BASED

    @pytest.mark.asyncio
    async def test_disagreement_triggers_retrain(self, detector, store, sample_series):
        """Test that F1 falling below the floor retrains the model."""
        await sample_series(store, "cpu.usage", [0.29, 0.31] * 6)
        model = detector.get_or_create_model("cpu.usage")
        model.accuracy.precision = 0.7
        model.accuracy.recall = 0.7

        await detector.update_model("cpu.usage", 0.3, is_anomaly=True)

        assert detector.models.get("cpu.usage").version == 2

    def test_root_cause_categories(self):
        assert root_cause_category("redis.hit_rate") is RootCauseCategory.INFRASTRUCTURE_PROBLEM
        assert root_cause_category("application.error_rate") is RootCauseCategory.CODE_ISSUE
        assert root_cause_category("network.latency.p95") is RootCauseCategory.CAPACITY_LIMIT
