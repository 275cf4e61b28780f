"""
Statistical anomaly detection over collected metrics.

Every checked metric is scored against its trailing 24 hour history with a
z-score (or a fixed rule for error rates). Detected anomalies are enriched
with related-metric context, a coarse root-cause guess, a severity-scaled
impact estimate and recommendations, then persisted. Resolution and
suppression feed back into the per-metric model accuracy.
"""

from datetime import timedelta
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import structlog

from predictive_optimization.core.exceptions import InvalidStateError, StoreError
from predictive_optimization.core.logging import component_scope
from predictive_optimization.core.registry import ModelRegistry
from predictive_optimization.core.scheduling import PeriodicTask
from predictive_optimization.core.timeutil import utcnow
from predictive_optimization.monitoring.metrics_collector import MetricsCollector
from predictive_optimization.monitoring.models import SystemMetrics
from predictive_optimization.monitoring.statistics import mean_and_std
from predictive_optimization.storage.redis_store import OptimizationStore

from .models import (
    Anomaly,
    AnomalyContext,
    AnomalyDetectionModel,
    AnomalyImpact,
    AnomalyRecommendation,
    AnomalySeverity,
    AnomalyStatus,
    AnomalyType,
    BusinessMetricsImpact,
    ContributingFactor,
    DetectionAccuracy,
    DetectionModelType,
    DetectionResult,
    Evidence,
    EvidenceType,
    OperationalCostImpact,
    RecommendationImpact,
    RecommendationPriority,
    RecommendationType,
    RecommendedAction,
    RecommendedActionType,
    RelatedMetric,
    RiskLevel,
    RootCause,
    RootCauseCategory,
    SystemPerformanceImpact,
    SystemState,
    TimeWindow,
    TrainingPeriod,
    UserExperienceImpact,
)

logger = structlog.get_logger(__name__)

MODEL_KIND = "model:anomaly"
ANOMALY_KIND = "anomaly"

HISTORY_SECONDS = 24 * 3600
RETRAIN_HISTORY_SECONDS = 14 * 24 * 3600
SAMPLING_INTERVAL = 300
MIN_SAMPLES = 10
RESOLVED_TTL = 7 * 24 * 3600
DEFAULT_THRESHOLD = 2.5

ACTIVE_STATUSES = (AnomalyStatus.ACTIVE, AnomalyStatus.INVESTIGATING)

# Metrics checked when detecting on a full system snapshot.
DETECTION_METRICS = (
    "cpu.usage",
    "memory.usage",
    "redis.memory_usage",
    "redis.connected_clients",
    "redis.hit_rate",
    "application.requests_per_second",
    "application.response_time.avg",
    "application.error_rate",
    "network.latency.p95",
)

DEFAULT_MODELS: Dict[str, Tuple[DetectionModelType, float, Dict[str, float]]] = {
    "cpu.usage": (DetectionModelType.STATISTICAL, 0.8, {"threshold": 2.5, "window": 10}),
    "memory.usage": (DetectionModelType.STATISTICAL, 0.7, {"threshold": 2.0, "window": 15}),
    "redis.memory_usage": (DetectionModelType.STATISTICAL, 0.9, {"threshold": 3.0, "window": 5}),
    "application.response_time.avg": (DetectionModelType.STATISTICAL, 0.8, {"threshold": 2.5}),
    "application.error_rate": (DetectionModelType.RULE_BASED, 0.9, {"max_error_rate": 0.05, "window": 5}),
}

# Expected historical correlation per metric pair; pairs not listed use 0.5.
EXPECTED_CORRELATIONS: Dict[Tuple[str, str], float] = {
    ("cpu.usage", "application.response_time.avg"): 0.7,
    ("memory.usage", "redis.memory_usage"): 0.8,
    ("application.requests_per_second", "redis.connected_clients"): 0.6,
    ("application.error_rate", "application.response_time.avg"): 0.5,
}
DEFAULT_CORRELATION = 0.5
CORRELATION_BREAK_CONFIDENCE = 0.8

RELATED_METRICS: Dict[str, Tuple[str, ...]] = {
    "cpu.usage": ("application.response_time.avg", "application.requests_per_second"),
    "memory.usage": ("redis.memory_usage", "application.error_rate"),
    "redis.memory_usage": ("memory.usage", "redis.hit_rate"),
    "application.response_time.avg": ("cpu.usage", "application.error_rate"),
}

SEVERITY_MULTIPLIER = {
    AnomalySeverity.CRITICAL: 1.0,
    AnomalySeverity.HIGH: 0.7,
    AnomalySeverity.MEDIUM: 0.4,
    AnomalySeverity.LOW: 0.2,
    AnomalySeverity.INFO: 0.1,
}


def z_score_severity(z: float) -> AnomalySeverity:
    if z > 4:
        return AnomalySeverity.CRITICAL
    if z > 3:
        return AnomalySeverity.HIGH
    if z > 2.5:
        return AnomalySeverity.MEDIUM
    return AnomalySeverity.LOW


def ratio_severity(ratio: float) -> AnomalySeverity:
    if ratio >= 3:
        return AnomalySeverity.CRITICAL
    if ratio >= 2:
        return AnomalySeverity.HIGH
    if ratio >= 1.5:
        return AnomalySeverity.MEDIUM
    return AnomalySeverity.LOW


def expected_correlation(first: str, second: str) -> float:
    return EXPECTED_CORRELATIONS.get(
        (first, second), EXPECTED_CORRELATIONS.get((second, first), DEFAULT_CORRELATION)
    )


def current_correlation(first: float, second: float) -> float:
    """Cheap stand-in for a rolling correlation of two point values."""
    return min(1.0, abs(first * second) / (first + second + 1))


def root_cause_category(metric_name: str) -> RootCauseCategory:
    if "cpu" in metric_name or "memory" in metric_name:
        return RootCauseCategory.RESOURCE_EXHAUSTION
    if "error" in metric_name:
        return RootCauseCategory.CODE_ISSUE
    if "redis" in metric_name:
        return RootCauseCategory.INFRASTRUCTURE_PROBLEM
    return RootCauseCategory.CAPACITY_LIMIT


def estimate_impact(severity: AnomalySeverity) -> AnomalyImpact:
    m = SEVERITY_MULTIPLIER[severity]
    return AnomalyImpact(
        user_experience=UserExperienceImpact(
            affected_users=int(1000 * m),
            response_time_increase=100 * m,
            error_rate_increase=0.05 * m,
            feature_availability=1 - 0.2 * m,
            satisfaction_score=1 - 0.3 * m,
        ),
        system_performance=SystemPerformanceImpact(
            throughput_decrease=0.2 * m,
            latency_increase=50 * m,
            resource_utilization=0.8 + 0.2 * m,
            error_rate=0.02 * m,
            availability_impact=0.1 * m,
        ),
        business_metrics=BusinessMetricsImpact(
            revenue_impact=1000 * m,
            conversion_rate_change=-0.1 * m,
            customer_satisfaction_change=-0.2 * m,
            brand_reputation_risk=0.3 * m,
        ),
        operational_cost=OperationalCostImpact(
            additional_resource_cost=500 * m,
            maintenance_cost=200 * m,
            opportunity_cost=1000 * m,
            total_cost=1700 * m,
        ),
    )


def build_recommendations(anomaly: Anomaly) -> List[AnomalyRecommendation]:
    if anomaly.anomaly_type is AnomalyType.CORRELATION_BREAK:
        return [AnomalyRecommendation(
            type=RecommendationType.INVESTIGATION,
            priority=RecommendationPriority.MEDIUM,
            title="Investigate Correlation Break",
            description=f"Expected correlation between {anomaly.metric_name.replace(':', ' and ')} has broken",
            action=RecommendedAction(
                type=RecommendedActionType.RUN_DIAGNOSTIC,
                parameters={"metrics": anomaly.metric_name.split(":"), "time_range": "24h"},
                automatable=True,
                risk_level=RiskLevel.LOW,
            ),
            expected_impact=RecommendationImpact(resolution_time=3600, effectiveness_score=0.7, risk_mitigation=0.6),
            timeframe="1 hour",
            prerequisites=["diagnostic-access"],
        )]

    recommendations: List[AnomalyRecommendation] = []
    if "cpu" in anomaly.metric_name:
        recommendations.append(AnomalyRecommendation(
            type=RecommendationType.IMMEDIATE_ACTION,
            priority=RecommendationPriority.HIGH,
            title="Scale CPU Resources",
            description="Increase CPU allocation to absorb the current load",
            action=RecommendedAction(
                type=RecommendedActionType.SCALE_RESOURCES,
                parameters={"resource": "cpu", "scale_factor": 1.5},
                automatable=True,
                risk_level=RiskLevel.MEDIUM,
            ),
            expected_impact=RecommendationImpact(resolution_time=300, effectiveness_score=0.8, risk_mitigation=0.7),
            timeframe="5 minutes",
            prerequisites=["admin-access"],
        ))

    if "memory" in anomaly.metric_name:
        recommendations.append(AnomalyRecommendation(
            type=RecommendationType.IMMEDIATE_ACTION,
            priority=RecommendationPriority.HIGH,
            title="Investigate Memory Usage",
            description="Check application logs for memory leaks or unusually large allocations",
            action=RecommendedAction(
                type=RecommendedActionType.INVESTIGATE_LOGS,
                parameters={"log_level": "error", "time_range": "1h"},
                automatable=False,
                risk_level=RiskLevel.LOW,
            ),
            expected_impact=RecommendationImpact(resolution_time=1800, effectiveness_score=0.6, risk_mitigation=0.8),
            timeframe="30 minutes",
            prerequisites=["log-access"],
        ))

    return recommendations


def _f1(precision: float, recall: float) -> float:
    if precision + recall == 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class AnomalyDetector:
    """
    Per-metric anomaly detector.

    Owns a ``ModelRegistry`` of detection models (loaded at ``start``,
    flushed at ``stop``). Anomalies are the only records it writes besides
    its models.
    """

    def __init__(
        self,
        store: OptimizationStore,
        collector: MetricsCollector,
        registry: Optional[ModelRegistry[AnomalyDetectionModel]] = None,
        interval: float = 60,
        retrain_f1: float = 0.7,
        correlation_threshold: float = 0.3,
    ):
        self.store = store
        self.collector = collector
        self.models = registry or ModelRegistry(store, MODEL_KIND, AnomalyDetectionModel)
        self.retrain_f1 = retrain_f1
        self.correlation_threshold = correlation_threshold

        self._task = PeriodicTask("anomaly-detection", interval, self.detect_latest, on_stop=self.models.save)

        logger.info("AnomalyDetector initialized", interval=interval)

    async def start(self) -> None:
        with component_scope("anomaly_detector"):
            await self.models.load()
            self.initialize_default_models()
            self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    def _training_period(self, sample_count: int, seconds: float) -> TrainingPeriod:
        end = utcnow()
        return TrainingPeriod(start=end - timedelta(seconds=seconds), end=end, sample_count=sample_count)

    def initialize_default_models(self) -> int:
        """Create the built-in models for metrics that have none yet."""
        created = 0
        for metric_name, (model_type, sensitivity, parameters) in DEFAULT_MODELS.items():
            if metric_name in self.models:
                continue
            self.models.put(metric_name, AnomalyDetectionModel(
                metric_name=metric_name,
                model_type=model_type,
                sensitivity=sensitivity,
                parameters=dict(parameters),
                training_period=self._training_period(0, HISTORY_SECONDS),
            ))
            created += 1
        return created

    def get_or_create_model(self, metric_name: str) -> AnomalyDetectionModel:
        model = self.models.get(metric_name)
        if model is None:
            model_type, sensitivity, parameters = DEFAULT_MODELS.get(
                metric_name, (DetectionModelType.STATISTICAL, 0.8, {"threshold": DEFAULT_THRESHOLD})
            )
            model = AnomalyDetectionModel(
                metric_name=metric_name,
                model_type=model_type,
                sensitivity=sensitivity,
                parameters=dict(parameters),
                training_period=self._training_period(0, HISTORY_SECONDS),
            )
            self.models.put(metric_name, model)
            logger.info("Detection model created", metric=metric_name, model_type=model_type.value)
        return model

    # Scoring

    @staticmethod
    def score(model: AnomalyDetectionModel, value: float, history: Sequence[float]) -> DetectionResult:
        """Score one value against the model and its history."""
        if len(history) < MIN_SAMPLES:
            return DetectionResult(is_anomaly=False, expected_value=value, sample_count=len(history))

        mean, std = mean_and_std(history)

        if model.model_type is DetectionModelType.RULE_BASED and "max_error_rate" in model.parameters:
            limit = float(model.parameters["max_error_rate"])
            ratio = value / limit if limit else 0.0
            return DetectionResult(
                is_anomaly=value > limit,
                anomaly_type=AnomalyType.SPIKE,
                severity=ratio_severity(ratio),
                expected_value=mean,
                deviation=value - limit,
                confidence=min(1.0, ratio / 2),
                sample_count=len(history),
            )

        threshold = float(model.parameters.get("threshold", DEFAULT_THRESHOLD))
        sigma = std or 1.0
        z = abs(value - mean) / sigma

        if value > mean + threshold * sigma:
            anomaly_type = AnomalyType.SPIKE
        elif value < mean - threshold * sigma:
            anomaly_type = AnomalyType.DROP
        else:
            anomaly_type = AnomalyType.OUTLIER

        return DetectionResult(
            is_anomaly=z > threshold,
            anomaly_type=anomaly_type,
            severity=z_score_severity(z),
            expected_value=mean,
            deviation=value - mean,
            confidence=min(1.0, z / 5),
            z_score=z,
            sample_count=len(history),
        )

    # Detection

    @staticmethod
    def _values(metrics: Union[SystemMetrics, Mapping[str, float]]) -> Dict[str, float]:
        if isinstance(metrics, SystemMetrics):
            flat = metrics.flatten()
            return {name: flat[name] for name in DETECTION_METRICS if name in flat}
        return {name: float(value) for name, value in metrics.items()}

    async def _baseline(self, metric_name: str, value: float, before: Optional[float]) -> List[float]:
        """
        Trailing history of a metric that excludes the reading under test.

        When no timestamp is given and the newest stored sample is this very
        reading, the window ends just before that sample.
        """
        if before is None:
            try:
                latest = await self.store.latest_sample(metric_name)
            except StoreError as e:
                logger.warning("Latest sample lookup failed", metric=metric_name, error=str(e))
                latest = None
            if latest is not None and latest[1] == value:
                before = latest[0]
        return await self.collector.history(metric_name, HISTORY_SECONDS, SAMPLING_INTERVAL, before=before)

    async def detect(
        self,
        metrics: Union[SystemMetrics, Mapping[str, float]],
        at: Optional[float] = None,
    ) -> List[Anomaly]:
        """
        Detect anomalies in a snapshot or a metric-name to value mapping.

        Each value is scored against history recorded before it: before the
        snapshot timestamp, before ``at``, or before the stored reading
        itself. Metrics with fewer than 10 historical points never produce
        anomalies, alone or as part of a correlated pair. Every anomaly
        returned has been persisted.
        """
        if at is None and isinstance(metrics, SystemMetrics):
            at = metrics.timestamp
        values = self._values(metrics)
        active = await self.list_active_anomalies()
        anomalies: List[Anomaly] = []
        sample_counts: Dict[str, int] = {}

        for metric_name, value in values.items():
            model = self.get_or_create_model(metric_name)
            history = await self._baseline(metric_name, value, at)
            sample_counts[metric_name] = len(history)
            result = self.score(model, value, history)
            if not result.is_anomaly:
                continue

            anomalies.append(Anomaly(
                metric_name=metric_name,
                anomaly_type=result.anomaly_type,
                severity=result.severity,
                value=value,
                expected_value=result.expected_value,
                deviation=result.deviation,
                confidence=result.confidence,
            ))

        open_breaks = {a.metric_name for a in active if a.anomaly_type is AnomalyType.CORRELATION_BREAK}
        for anomaly in self.detect_correlation_breaks(values, sample_counts):
            if anomaly.metric_name not in open_breaks:
                anomalies.append(anomaly)

        for anomaly in anomalies:
            self._enrich(anomaly, values, len(active))
            await self.store.save(ANOMALY_KIND, anomaly.id, anomaly)
            logger.warning(
                "Anomaly detected",
                anomaly_id=anomaly.id,
                metric=anomaly.metric_name,
                anomaly_type=anomaly.anomaly_type.value,
                severity=anomaly.severity.value,
                value=anomaly.value,
                expected=anomaly.expected_value,
            )

        return anomalies

    def detect_correlation_breaks(
        self,
        values: Mapping[str, float],
        sample_counts: Mapping[str, int],
    ) -> List[Anomaly]:
        """
        Compare known metric pairs against their expected correlation.

        Pairs with a missing or zero reading carry no signal and are skipped,
        as are pairs where either metric has fewer than 10 historical points.
        """
        breaks: List[Anomaly] = []
        for (first, second), expected in EXPECTED_CORRELATIONS.items():
            v1, v2 = values.get(first), values.get(second)
            if not v1 or not v2:
                continue
            if min(sample_counts.get(first, 0), sample_counts.get(second, 0)) < MIN_SAMPLES:
                continue

            current = current_correlation(v1, v2)
            difference = abs(current - expected)
            if difference <= self.correlation_threshold:
                continue

            breaks.append(Anomaly(
                metric_name=f"{first}:{second}",
                anomaly_type=AnomalyType.CORRELATION_BREAK,
                severity=AnomalySeverity.MEDIUM,
                value=current,
                expected_value=expected,
                deviation=difference,
                confidence=CORRELATION_BREAK_CONFIDENCE,
            ))
        return breaks

    def _enrich(self, anomaly: Anomaly, values: Mapping[str, float], active_count: int) -> None:
        detected_at = anomaly.detected_at

        related = []
        for name in RELATED_METRICS.get(anomaly.metric_name, ()):
            if name not in values:
                continue
            value = values[name]
            related.append(RelatedMetric(
                metric_name=name,
                correlation=0.7,
                value=value,
                normal_value=value * 0.9,
                deviation=value * 0.1,
            ))

        pressure = max(values.get(n, 0.0) for n in ("cpu.usage", "memory.usage", "redis.memory_usage"))
        anomaly.context = AnomalyContext(
            time_window=TimeWindow(
                start=detected_at - timedelta(seconds=SAMPLING_INTERVAL),
                end=detected_at,
                duration=SAMPLING_INTERVAL,
                preceding_period=3600,
            ),
            related_metrics=related,
            system_state=SystemState(
                overall_health=_clamp(1 - pressure),
                active_anomalies=active_count,
                system_load=values.get("cpu.usage", 0.0),
                business_hours=detected_at.weekday() < 5 and 9 <= detected_at.hour < 17,
                hour_of_day=detected_at.hour,
                day_of_week=detected_at.weekday(),
            ),
        )

        anomaly.root_cause = RootCause(
            category=root_cause_category(anomaly.metric_name),
            description=f"{anomaly.anomaly_type.value} in {anomaly.metric_name}",
            confidence=0.7,
            evidence=[Evidence(
                type=EvidenceType.CORRELATION
                if anomaly.anomaly_type is AnomalyType.CORRELATION_BREAK
                else EvidenceType.METRIC_VALUE,
                description=f"{anomaly.metric_name} at {anomaly.value:.4g}, expected {anomaly.expected_value:.4g}",
                value=anomaly.value,
                timestamp=detected_at,
                source="metrics-collector",
            )],
            contributing_factors=[ContributingFactor(
                factor="increased_load",
                impact=0.6,
                description="Higher than normal system load",
            )],
        )
        anomaly.impact = estimate_impact(anomaly.severity)
        anomaly.recommendations = build_recommendations(anomaly)

    async def detect_latest(self) -> List[Anomaly]:
        snapshot = self.collector.latest_snapshot()
        if snapshot is None:
            logger.debug("No snapshot collected yet, skipping detection")
            return []
        return await self.detect(snapshot)

    # Lifecycle transitions

    async def resolve_anomaly(self, anomaly_id: str, resolution: str) -> Anomaly:
        """
        Resolve an active anomaly; a no-op on one already in a terminal state.

        A resolution mentioning "false positive" marks it FALSE_POSITIVE.
        """
        anomaly = await self.store.require(ANOMALY_KIND, anomaly_id, Anomaly)
        if anomaly.status.is_terminal:
            return anomaly

        false_positive = "false positive" in resolution.lower()
        anomaly.status = AnomalyStatus.FALSE_POSITIVE if false_positive else AnomalyStatus.RESOLVED
        anomaly.resolution = resolution
        anomaly.resolved_at = utcnow()
        await self.store.save(ANOMALY_KIND, anomaly.id, anomaly, ttl=RESOLVED_TTL)

        model = self.models.get(anomaly.metric_name)
        if model is not None:
            if false_positive:
                model.accuracy.false_positive_rate = _clamp(model.accuracy.false_positive_rate + 0.02)
            else:
                model.accuracy.precision = _clamp(model.accuracy.precision + 0.02)
            model.accuracy.f1_score = _f1(model.accuracy.precision, model.accuracy.recall)
            self.models.mark_dirty(anomaly.metric_name)

        logger.info("Anomaly resolved", anomaly_id=anomaly_id, status=anomaly.status.value)
        return anomaly

    async def suppress_anomaly(self, anomaly_id: str, reason: str) -> Anomaly:
        anomaly = await self.store.require(ANOMALY_KIND, anomaly_id, Anomaly)
        if anomaly.status.is_terminal:
            return anomaly

        anomaly.status = AnomalyStatus.SUPPRESSED
        anomaly.resolution = reason
        anomaly.resolved_at = utcnow()
        await self.store.save(ANOMALY_KIND, anomaly.id, anomaly, ttl=RESOLVED_TTL)

        model = self.models.get(anomaly.metric_name)
        if model is not None:
            model.accuracy.recall = _clamp(model.accuracy.recall - 0.01)
            model.accuracy.f1_score = _f1(model.accuracy.precision, model.accuracy.recall)
            self.models.mark_dirty(anomaly.metric_name)

        logger.info("Anomaly suppressed", anomaly_id=anomaly_id, reason=reason)
        return anomaly

    async def investigate_anomaly(self, anomaly_id: str) -> Anomaly:
        anomaly = await self.store.require(ANOMALY_KIND, anomaly_id, Anomaly)
        if anomaly.status is AnomalyStatus.INVESTIGATING:
            return anomaly
        if anomaly.status is not AnomalyStatus.ACTIVE:
            raise InvalidStateError(ANOMALY_KIND, anomaly_id, anomaly.status.value, [AnomalyStatus.ACTIVE.value])

        anomaly.status = AnomalyStatus.INVESTIGATING
        await self.store.save(ANOMALY_KIND, anomaly.id, anomaly)
        return anomaly

    async def list_active_anomalies(self, metric_name: Optional[str] = None) -> List[Anomaly]:
        try:
            anomalies = await self.store.list(ANOMALY_KIND, Anomaly)
        except StoreError as e:
            logger.warning("Could not list anomalies", error=str(e))
            return []

        active = [
            a for a in anomalies
            if a.status in ACTIVE_STATUSES and (metric_name is None or a.metric_name == metric_name)
        ]
        return sorted(active, key=lambda a: a.detected_at, reverse=True)

    # Feedback

    async def update_model(self, metric_name: str, actual_value: float, is_anomaly: bool) -> Optional[DetectionAccuracy]:
        """
        Score ``actual_value`` and compare with the labelled outcome.

        Agreement nudges precision and recall up, disagreement down; the
        model is retrained when F1 drops below the retraining threshold.
        """
        model = self.models.get(metric_name)
        if model is None:
            return None

        history = await self.collector.history(metric_name, HISTORY_SECONDS, SAMPLING_INTERVAL)
        predicted = self.score(model, actual_value, history).is_anomaly
        step = 0.01 if predicted == is_anomaly else -0.01

        accuracy = model.accuracy
        accuracy.precision = _clamp(accuracy.precision + step)
        accuracy.recall = _clamp(accuracy.recall + step)
        accuracy.f1_score = _f1(accuracy.precision, accuracy.recall)
        accuracy.last_evaluation = utcnow()
        model.last_updated = accuracy.last_evaluation
        self.models.mark_dirty(metric_name)

        if accuracy.f1_score < self.retrain_f1:
            await self.retrain_model(metric_name)
        return model.accuracy

    async def retrain_model(self, metric_name: str) -> AnomalyDetectionModel:
        model = self.models.get(metric_name)
        if model is None:
            raise KeyError(metric_name)

        history = await self.collector.history(metric_name, RETRAIN_HISTORY_SECONDS, SAMPLING_INTERVAL)
        model.accuracy = DetectionAccuracy()
        model.training_period = self._training_period(len(history), RETRAIN_HISTORY_SECONDS)
        model.last_updated = utcnow()
        model.version += 1
        self.models.mark_dirty(metric_name)
        await self.models.save(metric_name)

        logger.info("Detection model retrained", metric=metric_name, version=model.version, samples=len(history))
        return model


__all__ = [
    "AnomalyDetector",
    "DEFAULT_MODELS",
    "EXPECTED_CORRELATIONS",
    "z_score_severity",
    "current_correlation",
]
