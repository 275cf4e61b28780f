"""
Unit tests for the performance predictor.
"""

import math
import time
from datetime import timedelta

import pytest

from predictive_optimization.core.timeutil import utcnow
from predictive_optimization.prediction import (
    BottleneckSeverity,
    MitigationType,
    PerformancePrediction,
    PerformancePredictor,
    ResourceType,
    TrendDirection,
)
from predictive_optimization.prediction.performance_predictor import (
    PREDICTION_KIND,
    bottleneck_severity,
    calculate_trend,
    detect_seasonality,
)


def rising(start: float, step: float, count: int = 20):
    return [start + step * i for i in range(count)]


def make_prediction(value: float, confidence: float, metric: str = "cpu.usage") -> PerformancePrediction:
    now = utcnow()
    return PerformancePrediction(
        metric_name=metric,
        time_horizon=3600,
        predicted_value=value,
        confidence=confidence,
        generated_at=now,
        valid_until=now + timedelta(seconds=3600),
    )


class TestTrend:
    """Test trend and seasonality helpers."""

    def test_increasing(self):
        direction, slope = calculate_trend(rising(0.1, 0.05))

        assert direction is TrendDirection.INCREASING
        assert slope == pytest.approx(0.05)

    def test_stable_below_slope_floor(self):
        direction, _ = calculate_trend(rising(0.5, 0.001))

        assert direction is TrendDirection.STABLE

    def test_decreasing(self):
        direction, _ = calculate_trend(rising(0.9, -0.02))

        assert direction is TrendDirection.DECREASING

    def test_short_series_has_no_seasonality(self):
        assert detect_seasonality([1.0] * 10).detected is False


class TestPredict:
    """Test single forecasts."""

    @pytest.mark.asyncio
    async def test_insufficient_history(self, predictor, store, sample_series):
        """Test that fewer than 10 samples give an unpersisted zero-confidence prediction."""
        await sample_series(store, "cpu.usage", [0.5] * 5)

        prediction = await predictor.predict("cpu.usage", 900)

        assert prediction.confidence == 0.0
        assert not prediction.is_actionable
        assert prediction.sample_count == 5
        assert await store.list(PREDICTION_KIND, PerformancePrediction) == []

    @pytest.mark.asyncio
    async def test_linear_projection(self, predictor, store, sample_series):
        """Test lastValue + slope * horizon/interval."""
        await sample_series(store, "cpu.usage", rising(0.2, 0.02))

        prediction = await predictor.predict("cpu.usage", 900)

        assert prediction.predicted_value == pytest.approx(0.58 + 0.02 * 3)
        assert prediction.confidence == pytest.approx(0.875)
        assert prediction.trend is TrendDirection.INCREASING
        assert any(f.name == "trend" for f in prediction.factors)

        stored = await store.load(PREDICTION_KIND, prediction.id, PerformancePrediction)
        assert stored == prediction
        assert 0 < await store.ttl(PREDICTION_KIND, prediction.id) <= 1800

    @pytest.mark.asyncio
    async def test_confidence_decays_with_horizon(self, predictor, store, sample_series):
        await sample_series(store, "memory.usage", [0.5] * 12)

        near = await predictor.predict("memory.usage", 300)
        far = await predictor.predict("memory.usage", 3600)
        beyond = await predictor.predict("memory.usage", 7200)

        assert near.confidence > far.confidence > beyond.confidence
        assert beyond.confidence == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_model_created_and_persisted(self, predictor, store, collector, sample_series):
        """Test that a model survives a save and reload."""
        await sample_series(store, "cpu.usage", [0.5] * 12)
        await predictor.predict("cpu.usage", 300)
        await predictor.models.save()

        reloaded = PerformancePredictor(store, collector)
        assert await reloaded.models.load() == 1
        assert reloaded.models.get("cpu.usage").training_data.sample_count == 12

    @pytest.mark.asyncio
    async def test_daily_cycle_detected_from_stored_history(self, predictor, store, sample_series):
        """Test that three stored days of a daily wave are recognised as seasonal."""
        day = 288
        wave = [0.5 + 0.3 * math.sin(2 * math.pi * i / day) for i in range(3 * day)]
        bucket_middle = time.time() // 300 * 300 + 150
        await sample_series(store, "cpu.usage", wave, end=bucket_middle)

        prediction = await predictor.predict("cpu.usage", 300)

        assert prediction.sample_count == 3 * day
        assert prediction.seasonality.detected is True
        assert prediction.seasonality.period == 86400
        assert prediction.seasonality.confidence > 0.5


class TestBottlenecks:
    """Test bottleneck classification."""

    def test_severity_buckets(self):
        assert bottleneck_severity(0.85, 0.8) is BottleneckSeverity.LOW
        assert bottleneck_severity(0.88, 0.8) is BottleneckSeverity.MEDIUM
        assert bottleneck_severity(0.96, 0.8) is BottleneckSeverity.HIGH
        assert bottleneck_severity(1.2, 0.8) is BottleneckSeverity.CRITICAL

    def test_critical_cpu_bottleneck(self, predictor):
        """Test 1.5x the CPU threshold at confidence 0.9."""
        bottleneck = predictor.bottleneck_from_prediction(make_prediction(1.2, 0.9), ResourceType.CPU, 0.8)

        assert bottleneck is not None
        assert bottleneck.severity is BottleneckSeverity.CRITICAL
        assert any(m.type is MitigationType.SCALE_UP for m in bottleneck.mitigation)
        assert bottleneck.impact.estimated_cost == 500

    def test_low_confidence_is_ignored(self, predictor):
        assert predictor.bottleneck_from_prediction(make_prediction(1.2, 0.7), ResourceType.CPU, 0.8) is None

    def test_below_threshold_is_ignored(self, predictor):
        assert predictor.bottleneck_from_prediction(make_prediction(0.8, 0.9), ResourceType.CPU, 0.8) is None

    @pytest.mark.asyncio
    async def test_predict_bottlenecks(self, predictor, store, sample_series):
        """Test that a rising CPU series yields a CPU bottleneck only."""
        await sample_series(store, "cpu.usage", rising(0.5, 0.02))

        bottlenecks = await predictor.predict_bottlenecks(horizon=300)

        assert [b.resource_type for b in bottlenecks] == [ResourceType.CPU]
        assert bottlenecks[0].predicted_value == pytest.approx(0.9)


class TestFeedback:
    """Test model accuracy feedback."""

    @pytest.mark.asyncio
    async def test_update_model_without_model(self, predictor):
        assert await predictor.update_model("cpu.usage", 0.5, time.time()) is None

    @pytest.mark.asyncio
    async def test_accurate_prediction_keeps_version(self, predictor, store, sample_series):
        await sample_series(store, "cpu.usage", [0.5] * 12)
        prediction = await predictor.predict("cpu.usage", 300)

        accuracy = await predictor.update_model("cpu.usage", prediction.predicted_value, time.time())

        assert accuracy.mape == pytest.approx(0.0)
        assert predictor.models.get("cpu.usage").version == 1

    @pytest.mark.asyncio
    async def test_poor_accuracy_triggers_retrain(self, predictor, store, sample_series):
        """Test that MAPE over 20% retrains the model."""
        await sample_series(store, "cpu.usage", [0.5] * 12)
        await predictor.predict("cpu.usage", 300)

        accuracy = await predictor.update_model("cpu.usage", 1.0, time.time())

        assert accuracy.mape == pytest.approx(0.5)
        assert predictor.models.get("cpu.usage").version == 2

    @pytest.mark.asyncio
    async def test_zero_actual_value(self, predictor, store, sample_series):
        await sample_series(store, "cpu.usage", [0.5] * 12)
        await predictor.predict("cpu.usage", 300)

        accuracy = await predictor.update_model("cpu.usage", 0.0, time.time())

        assert accuracy.mape == 1.0


class TestActivePredictions:
    @pytest.mark.asyncio
    async def test_list_active_predictions(self, predictor, store, sample_series):
        await sample_series(store, "cpu.usage", [0.5] * 12)
        prediction = await predictor.predict("cpu.usage", 300)

        active = await predictor.list_active_predictions("cpu.usage")

        assert [p.id for p in active] == [prediction.id]
        assert await predictor.list_active_predictions("memory.usage") == []
