"""
Metrics collection for the optimization loop.

Gathers host, datastore, network and application readings once per tick,
persists each tracked value as a time-series sample, mirrors the values into
Prometheus gauges and manages threshold alerts. Every other component reads
its history from here.
"""

import asyncio
import math
import operator
import time
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from predictive_optimization.core.exceptions import StoreError
from predictive_optimization.core.logging import component_scope
from predictive_optimization.core.scheduling import PeriodicTask
from predictive_optimization.core.timeutil import utcnow
from predictive_optimization.storage.redis_store import OptimizationStore

from .models import (
    AggregationType,
    AlertCondition,
    AlertOperator,
    AlertSeverity,
    ApplicationMetrics,
    CPUMetrics,
    DatastoreMetrics,
    MemoryMetrics,
    MetricAlert,
    MetricSample,
    MetricsAggregation,
    MetricsSummary,
    NetworkMetrics,
    SystemMetrics,
    TimeRange,
)
from .sources import ApplicationMetricsRecorder, DatastoreSource, SystemResourceSource
from .statistics import nearest_rank, summarize

logger = structlog.get_logger(__name__)

ALERT_KIND = "alert"

_OPERATORS: Dict[AlertOperator, Callable[[float, float], bool]] = {
    AlertOperator.GT: operator.gt,
    AlertOperator.LT: operator.lt,
    AlertOperator.GTE: operator.ge,
    AlertOperator.LTE: operator.le,
    AlertOperator.EQ: operator.eq,
    AlertOperator.NE: operator.ne,
}


def _aggregate(values: List[float], aggregation: AggregationType, interval: float) -> float:
    if aggregation is AggregationType.SUM:
        return float(sum(values))
    if aggregation is AggregationType.MIN:
        return float(min(values))
    if aggregation is AggregationType.MAX:
        return float(max(values))
    if aggregation is AggregationType.COUNT:
        return float(len(values))
    if aggregation is AggregationType.RATE:
        return float(sum(values)) / interval
    if aggregation is AggregationType.PERCENTILE:
        return nearest_rank(sorted(values), 0.95)
    return float(sum(values)) / len(values)


class MetricsCollector:
    """
    Periodic system metrics collector backed by the optimization store.

    Sub-collectors are the adaptation point for a host platform: pass custom
    sources to read real counters from elsewhere.
    """

    def __init__(
        self,
        store: OptimizationStore,
        system_source: Optional[SystemResourceSource] = None,
        datastore_source: Optional[DatastoreSource] = None,
        application_recorder: Optional[ApplicationMetricsRecorder] = None,
        registry: Optional[CollectorRegistry] = None,
        interval: float = 30,
    ):
        self.store = store
        self.system_source = system_source or SystemResourceSource()
        self.datastore_source = datastore_source or DatastoreSource(store)
        self.application_recorder = application_recorder or ApplicationMetricsRecorder()
        self.registry = registry or CollectorRegistry()
        self._setup_prometheus_metrics()

        self._latest: Optional[SystemMetrics] = None
        self._task = PeriodicTask("metrics-collection", interval, self.collect_snapshot)

        logger.info("MetricsCollector initialized", interval=interval)

    def _setup_prometheus_metrics(self) -> None:
        self.metric_gauge = Gauge(
            "predictive_optimization_metric_value",
            "Latest collected value per tracked metric",
            ["metric"],
            registry=self.registry,
        )
        self.snapshot_counter = Counter(
            "predictive_optimization_snapshots_total",
            "Number of collected system snapshots",
            registry=self.registry,
        )
        self.collection_errors = Counter(
            "predictive_optimization_collection_errors_total",
            "Sub-collector or persistence failures",
            ["source"],
            registry=self.registry,
        )
        self.collection_duration = Histogram(
            "predictive_optimization_collection_duration_seconds",
            "Time spent collecting one snapshot",
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
            registry=self.registry,
        )
        self.active_alerts_gauge = Gauge(
            "predictive_optimization_active_alerts",
            "Unresolved metric alerts",
            registry=self.registry,
        )

    async def start(self) -> None:
        with component_scope("metrics_collector"):
            self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    def latest_snapshot(self) -> Optional[SystemMetrics]:
        return self._latest

    async def _safe(self, source: str, func: Callable[[], Any], default: Callable[[], Any]) -> Any:
        try:
            return await func()
        except Exception as e:
            logger.error("Sub-collector failed, using defaults", source=source, error=str(e))
            self.collection_errors.labels(source=source).inc()
            return default()

    async def collect_snapshot(self) -> SystemMetrics:
        """
        Collect one snapshot from every sub-collector and persist its samples.

        A failed sub-collector contributes zero values instead of aborting the
        snapshot; a failed write is logged and counted.
        """
        started = time.perf_counter()

        cpu, memory, datastore, network, latency, application = await asyncio.gather(
            self._safe("cpu", self.system_source.collect_cpu, CPUMetrics),
            self._safe("memory", self.system_source.collect_memory, MemoryMetrics),
            self._safe("datastore", self.datastore_source.collect, DatastoreMetrics),
            self._safe("network", self.system_source.collect_network, NetworkMetrics),
            self._safe("latency", self.datastore_source.measure_latency, lambda: None),
            self._safe("application", self.application_recorder.collect, ApplicationMetrics),
        )
        if latency is not None:
            network.latency = latency

        snapshot = SystemMetrics(
            timestamp=time.time(),
            cpu=cpu,
            memory=memory,
            datastore=datastore,
            network=network,
            application=application,
        )

        try:
            await self.add_samples(snapshot.to_samples())
        except StoreError as e:
            logger.error("Failed to persist snapshot samples", error=str(e))
            self.collection_errors.labels(source="store").inc()

        for name, value in snapshot.flatten().items():
            self.metric_gauge.labels(metric=name).set(value)

        self._latest = snapshot
        self.snapshot_counter.inc()
        self.collection_duration.observe(time.perf_counter() - started)

        logger.debug(
            "Snapshot collected",
            cpu_usage=cpu.usage,
            memory_usage=memory.usage,
            redis_memory_usage=datastore.memory_usage,
        )
        return snapshot

    async def add_sample(self, sample: MetricSample) -> None:
        await self.store.add_sample(sample.metric_name, sample.value, sample.timestamp, sample.labels)

    async def add_samples(self, samples: Iterable[MetricSample]) -> None:
        for sample in samples:
            await self.add_sample(sample)

    async def query_range(
        self,
        metric_name: str,
        time_range: TimeRange,
        aggregation: AggregationType = AggregationType.AVG,
        include_end: bool = True,
    ) -> MetricsAggregation:
        """
        Aggregate a metric series into ``time_range.interval`` buckets.

        Read failures degrade to an empty aggregation.
        """
        try:
            raw = await self.store.range_samples(
                metric_name, time_range.start, time_range.end, include_end=include_end
            )
        except StoreError as e:
            logger.warning("Range query failed, returning empty series", metric=metric_name, error=str(e))
            raw = []

        buckets: Dict[int, List[float]] = defaultdict(list)
        for timestamp, value in raw:
            if math.isnan(value):
                continue
            buckets[int(timestamp // time_range.interval)].append(value)

        timestamps: List[float] = []
        values: List[float] = []
        for bucket in sorted(buckets):
            timestamps.append(bucket * time_range.interval)
            values.append(_aggregate(buckets[bucket], aggregation, time_range.interval))

        return MetricsAggregation(
            metric_name=metric_name,
            time_range=time_range,
            aggregation_type=aggregation,
            values=values,
            timestamps=timestamps,
            summary=summarize(values) if values else MetricsSummary(),
        )

    async def history(
        self,
        metric_name: str,
        seconds: float,
        interval: float = 300,
        before: Optional[float] = None,
    ) -> List[float]:
        """
        Average-aggregated values for the trailing ``seconds``.

        With ``before`` the window ends just short of that epoch timestamp, so
        a reading stored at exactly ``before`` stays out of its own baseline.
        """
        aggregation = await self.query_range(
            metric_name,
            TimeRange.last(seconds, interval, now=before),
            include_end=before is None,
        )
        return aggregation.values

    # Alerts

    @staticmethod
    def evaluate_alert_condition(value: float, condition: AlertCondition, threshold: float) -> bool:
        return _OPERATORS[condition.operator](value, threshold)

    async def record_alert(
        self,
        metric_name: str,
        condition: AlertCondition,
        threshold: float,
        severity: AlertSeverity,
        message: str,
        current_value: Optional[float] = None,
    ) -> MetricAlert:
        alert = MetricAlert(
            metric_name=metric_name,
            condition=condition,
            threshold=threshold,
            current_value=current_value,
            severity=severity,
            message=message,
        )
        await self.store.save(ALERT_KIND, alert.id, alert)
        logger.warning(
            "Metric alert raised",
            alert_id=alert.id,
            metric=metric_name,
            severity=severity.value,
            threshold=threshold,
            value=current_value,
        )
        return alert

    async def check_threshold(
        self,
        metric_name: str,
        value: float,
        condition: AlertCondition,
        threshold: float,
        severity: AlertSeverity,
        message: Optional[str] = None,
    ) -> Optional[MetricAlert]:
        """Raise an alert when ``value`` satisfies the condition."""
        if not self.evaluate_alert_condition(value, condition, threshold):
            return None
        message = message or f"{metric_name} {condition.operator.value} {threshold} (value {value:.4g})"
        return await self.record_alert(metric_name, condition, threshold, severity, message, value)

    async def list_active_alerts(self) -> List[MetricAlert]:
        try:
            alerts = await self.store.list(ALERT_KIND, MetricAlert)
        except StoreError as e:
            logger.warning("Could not list alerts", error=str(e))
            return []

        active = [alert for alert in alerts if not alert.resolved]
        active.sort(key=lambda a: a.timestamp, reverse=True)
        self.active_alerts_gauge.set(len(active))
        return active

    async def resolve_alert(self, alert_id: str) -> MetricAlert:
        alert = await self.store.require(ALERT_KIND, alert_id, MetricAlert)
        if alert.resolved:
            return alert

        alert.resolved = True
        alert.resolved_at = utcnow()
        await self.store.save(ALERT_KIND, alert.id, alert)
        logger.info("Metric alert resolved", alert_id=alert_id, metric=alert.metric_name)
        return alert


__all__ = ["MetricsCollector"]
