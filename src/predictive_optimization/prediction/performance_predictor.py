"""
Lightweight statistical forecasting per metric.

Each tracked metric gets one model (exponential-smoothing parameters plus
accuracy statistics). Forecasts combine a least-squares trend with daily
seasonality detection; bottleneck prediction runs forecasts against a fixed
resource threshold table.

Requirements: at least 10 historical points, otherwise the prediction carries
zero confidence and is never acted upon.
"""

import math
from datetime import timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog

from predictive_optimization.core.exceptions import StoreError
from predictive_optimization.core.logging import component_scope
from predictive_optimization.core.registry import ModelRegistry
from predictive_optimization.core.scheduling import PeriodicTask
from predictive_optimization.core.timeutil import from_epoch, utcnow
from predictive_optimization.monitoring.metrics_collector import MetricsCollector
from predictive_optimization.monitoring.statistics import linear_slope, mean_and_std
from predictive_optimization.storage.redis_store import OptimizationStore

from .models import (
    BottleneckImpact,
    BottleneckPrediction,
    BottleneckSeverity,
    ImpactLevel,
    MitigationStrategy,
    MitigationType,
    ModelAccuracy,
    ModelType,
    PerformancePrediction,
    PredictionFactor,
    PredictionModel,
    PredictionType,
    ResourceType,
    SeasonalityPattern,
    TrainingData,
    TrendDirection,
)

logger = structlog.get_logger(__name__)

MODEL_KIND = "model:prediction"
PREDICTION_KIND = "prediction"
BOTTLENECK_KIND = "bottleneck"

SAMPLING_INTERVAL = 300
HISTORY_SECONDS = 7 * 24 * 3600
RETRAIN_HISTORY_SECONDS = 14 * 24 * 3600
MIN_SAMPLES = 10
SEASONALITY_MIN_SAMPLES = 24
DAILY_LAG = 288  # one day of 5 minute buckets
STABLE_SLOPE = 0.01
BOTTLENECK_TTL = 24 * 3600

ROUTINE_METRICS = (
    "cpu.usage",
    "memory.usage",
    "redis.memory_usage",
    "redis.connected_clients",
    "application.requests_per_second",
    "application.response_time.avg",
)
ROUTINE_HORIZONS = (300, 900, 1800, 3600)

BOTTLENECK_THRESHOLDS: Tuple[Tuple[ResourceType, str, float], ...] = (
    (ResourceType.CPU, "cpu.usage", 0.8),
    (ResourceType.MEMORY, "memory.usage", 0.85),
    (ResourceType.REDIS_MEMORY, "redis.memory_usage", 0.9),
    (ResourceType.NETWORK_BANDWIDTH, "network.bytes_in", 1_000_000),
    (ResourceType.CONNECTION_POOL, "redis.connected_clients", 1000),
)

AFFECTED_SERVICES: Dict[ResourceType, List[str]] = {
    ResourceType.CPU: ["search", "ai-routing", "code-intelligence"],
    ResourceType.MEMORY: ["embedding-manager", "vector-storage", "caching"],
    ResourceType.REDIS_MEMORY: ["all-services"],
    ResourceType.NETWORK_BANDWIDTH: ["api-gateway", "websocket-gateway"],
    ResourceType.CONNECTION_POOL: ["database-operations", "caching-layer"],
}

PERFORMANCE_DEGRADATION = {
    BottleneckSeverity.CRITICAL: 0.8,
    BottleneckSeverity.HIGH: 0.5,
    BottleneckSeverity.MEDIUM: 0.3,
    BottleneckSeverity.LOW: 0.1,
}

IMPACT_LEVELS = {
    BottleneckSeverity.CRITICAL: ImpactLevel.CRITICAL,
    BottleneckSeverity.HIGH: ImpactLevel.HIGH,
    BottleneckSeverity.MEDIUM: ImpactLevel.MEDIUM,
    BottleneckSeverity.LOW: ImpactLevel.LOW,
}

BASE_COST = {
    ResourceType.CPU: 100,
    ResourceType.MEMORY: 80,
    ResourceType.REDIS_MEMORY: 150,
    ResourceType.NETWORK_BANDWIDTH: 200,
    ResourceType.CONNECTION_POOL: 50,
}
COST_MULTIPLIER = {
    BottleneckSeverity.CRITICAL: 5,
    BottleneckSeverity.HIGH: 3,
    BottleneckSeverity.MEDIUM: 2,
    BottleneckSeverity.LOW: 1,
}

BASE_DURATION = {
    ResourceType.CPU: 1800,
    ResourceType.MEMORY: 3600,
    ResourceType.REDIS_MEMORY: 7200,
    ResourceType.NETWORK_BANDWIDTH: 900,
    ResourceType.CONNECTION_POOL: 600,
}
DURATION_MULTIPLIER = {
    BottleneckSeverity.CRITICAL: 3,
    BottleneckSeverity.HIGH: 2,
    BottleneckSeverity.MEDIUM: 1.5,
    BottleneckSeverity.LOW: 1,
}

MITIGATIONS: Dict[ResourceType, List[MitigationStrategy]] = {
    ResourceType.CPU: [
        MitigationStrategy(
            id="cpu-scale-up",
            name="Scale Up CPU",
            description="Increase CPU allocation for the service",
            type=MitigationType.SCALE_UP,
            effectiveness=0.8,
            cost=200,
            implementation_time=300,
            prerequisites=["admin-access"],
            risks=["service-restart-required"],
        )
    ],
    ResourceType.MEMORY: [
        MitigationStrategy(
            id="memory-scale-up",
            name="Scale Up Memory",
            description="Increase memory allocation for the service",
            type=MitigationType.SCALE_UP,
            effectiveness=0.9,
            cost=150,
            implementation_time=300,
            prerequisites=["admin-access"],
            risks=["service-restart-required"],
        )
    ],
    ResourceType.REDIS_MEMORY: [
        MitigationStrategy(
            id="redis-optimize",
            name="Optimize Redis Configuration",
            description="Adjust Redis memory policies and eviction settings",
            type=MitigationType.OPTIMIZE_CONFIG,
            effectiveness=0.7,
            cost=0,
            implementation_time=600,
            prerequisites=["redis-admin-access"],
            risks=["potential-data-loss"],
        )
    ],
}


def calculate_trend(data: Sequence[float]) -> Tuple[TrendDirection, float]:
    """Least-squares trend over the sample index."""
    if len(data) < 2:
        return TrendDirection.STABLE, 0.0

    slope = linear_slope(data)
    if abs(slope) < STABLE_SLOPE:
        return TrendDirection.STABLE, slope
    return (TrendDirection.INCREASING if slope > 0 else TrendDirection.DECREASING), slope


def autocorrelation(data: Sequence[float], lag: int) -> float:
    if len(data) <= lag:
        return 0.0

    values = np.asarray(data, dtype=float)
    deviations = values - values.mean()
    denominator = float(np.sum(deviations ** 2))
    if denominator == 0:
        return 0.0
    numerator = float(np.sum(deviations[:-lag] * deviations[lag:]))
    return numerator / denominator


def detect_seasonality(data: Sequence[float]) -> SeasonalityPattern:
    if len(data) < SEASONALITY_MIN_SAMPLES:
        return SeasonalityPattern()

    correlation = autocorrelation(data, DAILY_LAG)
    return SeasonalityPattern(
        detected=correlation > 0.3,
        period=DAILY_LAG * SAMPLING_INTERVAL,
        amplitude=(max(data) - min(data)) / 2,
        phase=0.0,
        confidence=max(0.0, correlation),
    )


def coefficient_of_variation(data: Sequence[float]) -> float:
    if len(data) < 2:
        return 0.0
    mean, std = mean_and_std(data)
    return 0.0 if mean == 0 else std / abs(mean)


def assess_data_quality(data: Sequence[float]) -> float:
    if not data:
        return 0.0

    quality = 1.0
    if any(math.isnan(v) for v in data):
        quality -= 0.3
    if any(math.isinf(v) for v in data):
        quality -= 0.3
    if any(v < 0 for v in data):
        quality -= 0.1
    return max(0.0, quality)


def count_outliers(data: Sequence[float]) -> int:
    if len(data) < 3:
        return 0
    mean, std = mean_and_std(data)
    return sum(1 for v in data if abs(v - mean) > 2 * std)


def bottleneck_severity(predicted_value: float, threshold: float) -> BottleneckSeverity:
    # rounded so 1.2 against 0.8 lands on the 1.5 boundary
    ratio = round(predicted_value / threshold, 9)
    if ratio >= 1.5:
        return BottleneckSeverity.CRITICAL
    if ratio >= 1.2:
        return BottleneckSeverity.HIGH
    if ratio >= 1.1:
        return BottleneckSeverity.MEDIUM
    return BottleneckSeverity.LOW


class PerformancePredictor:
    """
    Per-metric forecaster and bottleneck predictor.

    Models live in a ``ModelRegistry`` owned by this predictor: loaded at
    ``start``, mutated in place, flushed at ``stop``.
    """

    def __init__(
        self,
        store: OptimizationStore,
        collector: MetricsCollector,
        registry: Optional[ModelRegistry[PredictionModel]] = None,
        interval: float = 300,
        bottleneck_confidence: float = 0.7,
        retrain_mape: float = 0.2,
    ):
        self.store = store
        self.collector = collector
        self.models = registry or ModelRegistry(store, MODEL_KIND, PredictionModel)
        self.bottleneck_confidence = bottleneck_confidence
        self.retrain_mape = retrain_mape

        self._task = PeriodicTask(
            "prediction", interval, self.generate_routine_predictions, on_stop=self.models.save
        )

        logger.info("PerformancePredictor initialized", interval=interval)

    async def start(self) -> None:
        with component_scope("performance_predictor"):
            await self.models.load()
            self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    async def _history(self, metric_name: str, seconds: float) -> List[float]:
        return await self.collector.history(metric_name, seconds, SAMPLING_INTERVAL)

    def _training_data(self, data: Sequence[float], seconds: float) -> TrainingData:
        end = utcnow()
        return TrainingData(
            start_time=end - timedelta(seconds=seconds),
            end_time=end,
            sample_count=len(data),
            data_quality=assess_data_quality(data),
            missing_values=0,
            outliers=count_outliers(data),
        )

    def get_or_create_model(self, metric_name: str, data: Sequence[float]) -> PredictionModel:
        model = self.models.get(metric_name)
        if model is None:
            model = PredictionModel(
                metric_name=metric_name,
                model_type=ModelType.EXPONENTIAL_SMOOTHING,
                parameters={"alpha": 0.3, "beta": 0.1, "gamma": 0.1},
                accuracy=ModelAccuracy(),
                training_data=self._training_data(data, HISTORY_SECONDS),
            )
            self.models.put(metric_name, model)
            logger.info("Prediction model created", metric=metric_name, samples=len(data))
        return model

    async def predict(
        self,
        metric_name: str,
        horizon: int,
        prediction_type: PredictionType = PredictionType.RESOURCE_USAGE,
    ) -> PerformancePrediction:
        """
        Forecast ``metric_name`` ``horizon`` seconds ahead.

        Returns a zero-confidence prediction when fewer than 10 samples are
        available; such predictions are not persisted.
        """
        data = await self._history(metric_name, HISTORY_SECONDS)
        self.get_or_create_model(metric_name, data)

        generated_at = utcnow()
        valid_until = generated_at + timedelta(seconds=horizon)

        if len(data) < MIN_SAMPLES:
            logger.debug("Insufficient history for prediction", metric=metric_name, samples=len(data))
            return PerformancePrediction(
                metric_name=metric_name,
                prediction_type=prediction_type,
                time_horizon=horizon,
                predicted_value=data[-1] if data else 0.0,
                confidence=0.0,
                sample_count=len(data),
                generated_at=generated_at,
                valid_until=valid_until,
            )

        direction, slope = calculate_trend(data)
        seasonality = detect_seasonality(data)
        predicted_value = data[-1] + slope * (horizon / SAMPLING_INTERVAL)
        confidence = max(0.1, 1 - (horizon / 3600) * 0.5)

        prediction = PerformancePrediction(
            metric_name=metric_name,
            prediction_type=prediction_type,
            time_horizon=horizon,
            predicted_value=predicted_value,
            confidence=confidence,
            trend=direction,
            seasonality=seasonality,
            anomaly_score=self._anomaly_score(predicted_value, data),
            factors=self._prediction_factors(data, direction, slope, seasonality),
            sample_count=len(data),
            generated_at=generated_at,
            valid_until=valid_until,
        )

        await self.store.save(PREDICTION_KIND, prediction.id, prediction, ttl=int(math.ceil(horizon * 2)))
        return prediction

    @staticmethod
    def _anomaly_score(predicted_value: float, data: Sequence[float]) -> float:
        mean, std = mean_and_std(data)
        if std == 0:
            return 0.0
        return min(1.0, abs(predicted_value - mean) / std / 3)

    @staticmethod
    def _prediction_factors(
        data: Sequence[float],
        direction: TrendDirection,
        slope: float,
        seasonality: SeasonalityPattern,
    ) -> List[PredictionFactor]:
        factors: List[PredictionFactor] = []

        if abs(slope) > STABLE_SLOPE:
            factors.append(PredictionFactor(
                name="trend",
                impact=math.copysign(min(1.0, abs(slope) * 10), slope),
                confidence=0.8,
                description=f"{direction.value} trend detected",
            ))

        if seasonality.detected:
            factors.append(PredictionFactor(
                name="seasonality",
                impact=seasonality.amplitude / (max(data) or 1),
                confidence=seasonality.confidence,
                description=f"Seasonal pattern with {seasonality.period:.0f}s period",
            ))

        volatility = coefficient_of_variation(data)
        if volatility > 0.1:
            factors.append(PredictionFactor(
                name="volatility",
                impact=-volatility,
                confidence=0.7,
                description=f"High volatility detected ({volatility * 100:.1f}%)",
            ))

        return factors

    # Bottlenecks

    def bottleneck_from_prediction(
        self,
        prediction: PerformancePrediction,
        resource_type: ResourceType,
        threshold: float,
    ) -> Optional[BottleneckPrediction]:
        """Classify a prediction against a resource threshold."""
        if prediction.predicted_value <= threshold or prediction.confidence <= self.bottleneck_confidence:
            return None

        severity = bottleneck_severity(prediction.predicted_value, threshold)
        return BottleneckPrediction(
            resource_type=resource_type,
            metric_name=prediction.metric_name,
            severity=severity,
            predicted_value=prediction.predicted_value,
            threshold=threshold,
            estimated_time=prediction.generated_at + timedelta(seconds=prediction.time_horizon),
            duration=BASE_DURATION.get(resource_type, 1800) * DURATION_MULTIPLIER[severity],
            impact=BottleneckImpact(
                affected_services=AFFECTED_SERVICES.get(resource_type, ["unknown"]),
                performance_degradation=PERFORMANCE_DEGRADATION[severity],
                user_impact=IMPACT_LEVELS[severity],
                business_impact=IMPACT_LEVELS[severity],
                estimated_cost=BASE_COST.get(resource_type, 100) * COST_MULTIPLIER[severity],
            ),
            mitigation=[m.model_copy() for m in MITIGATIONS.get(resource_type, [])],
            confidence=prediction.confidence,
        )

    async def predict_bottlenecks(self, horizon: int = 3600) -> List[BottleneckPrediction]:
        bottlenecks: List[BottleneckPrediction] = []

        for resource_type, metric_name, threshold in BOTTLENECK_THRESHOLDS:
            prediction = await self.predict(metric_name, horizon, PredictionType.CAPACITY_LIMIT)
            bottleneck = self.bottleneck_from_prediction(prediction, resource_type, threshold)
            if bottleneck is None:
                continue

            await self.store.save(BOTTLENECK_KIND, bottleneck.id, bottleneck, ttl=BOTTLENECK_TTL)
            logger.warning(
                "Bottleneck predicted",
                resource=resource_type.value,
                severity=bottleneck.severity.value,
                predicted=prediction.predicted_value,
                threshold=threshold,
            )
            bottlenecks.append(bottleneck)

        return sorted(bottlenecks, key=lambda b: b.estimated_time)

    # Feedback

    async def update_model(self, metric_name: str, actual_value: float, timestamp: float) -> Optional[ModelAccuracy]:
        """
        Score recent predictions against an observed value.

        Retrains the model when MAPE exceeds the retraining threshold.
        """
        model = self.models.get(metric_name)
        if model is None:
            return None

        since = from_epoch(timestamp - 3600)
        recent = [p for p in await self._stored_predictions(metric_name) if p.generated_at >= since]
        if not recent:
            return None

        errors = [abs(p.predicted_value - actual_value) for p in recent]
        n = len(errors)
        mape = sum(errors) / (n * abs(actual_value)) if actual_value else float(sum(errors) > 0)
        accuracy = ModelAccuracy(
            mape=mape,
            mae=sum(errors) / n,
            rmse=math.sqrt(sum(e * e for e in errors) / n),
            r2=model.accuracy.r2,
            last_validation=from_epoch(timestamp),
            validation_samples=n,
        )
        model.accuracy = accuracy
        model.last_updated = from_epoch(timestamp)
        self.models.mark_dirty(metric_name)

        if mape > self.retrain_mape:
            await self.retrain_model(metric_name)

        return accuracy

    async def retrain_model(self, metric_name: str) -> PredictionModel:
        model = self.models.get(metric_name)
        if model is None:
            raise KeyError(metric_name)

        data = await self._history(metric_name, RETRAIN_HISTORY_SECONDS)
        model.parameters = {"alpha": 0.3, "beta": 0.1, "gamma": 0.1}
        model.training_data = self._training_data(data, RETRAIN_HISTORY_SECONDS)
        model.last_updated = utcnow()
        model.version += 1
        self.models.mark_dirty(metric_name)
        await self.models.save(metric_name)

        logger.info("Model retrained", metric=metric_name, version=model.version, samples=len(data))
        return model

    async def _stored_predictions(self, metric_name: Optional[str] = None) -> List[PerformancePrediction]:
        try:
            predictions = await self.store.list(PREDICTION_KIND, PerformancePrediction)
        except StoreError as e:
            logger.warning("Could not list predictions", error=str(e))
            return []
        if metric_name:
            predictions = [p for p in predictions if p.metric_name == metric_name]
        return predictions

    async def list_active_predictions(self, metric_name: Optional[str] = None) -> List[PerformancePrediction]:
        now = utcnow()
        active = [p for p in await self._stored_predictions(metric_name) if p.is_valid(now)]
        return sorted(active, key=lambda p: p.generated_at)

    async def generate_routine_predictions(self) -> List[PerformancePrediction]:
        predictions: List[PerformancePrediction] = []
        for metric_name in ROUTINE_METRICS:
            for horizon in ROUTINE_HORIZONS:
                try:
                    predictions.append(await self.predict(metric_name, horizon))
                except StoreError as e:
                    logger.error("Routine prediction failed", metric=metric_name, horizon=horizon, error=str(e))
        await self.models.save()
        return predictions


__all__ = [
    "PerformancePredictor",
    "BOTTLENECK_THRESHOLDS",
    "calculate_trend",
    "detect_seasonality",
    "bottleneck_severity",
]
