"""
Metric and alert data structures.

Snapshots are plain dataclasses produced once per collection tick; alerts are
pydantic records persisted in the store.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from predictive_optimization.core.timeutil import epoch_now, utcnow


@dataclass(frozen=True)
class MetricSample:
    """A single time-series sample."""

    metric_name: str
    value: float
    timestamp: float = field(default_factory=epoch_now)
    labels: Optional[Dict[str, str]] = None


@dataclass
class CPUMetrics:
    usage: float = 0.0  # 0-1
    load_average: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    cores: int = 0
    processes: int = 0


@dataclass
class MemoryMetrics:
    used: float = 0.0  # bytes
    total: float = 0.0
    available: float = 0.0
    usage: float = 0.0  # 0-1
    swap_used: float = 0.0
    swap_total: float = 0.0


@dataclass
class DatastoreMetrics:
    memory_usage: float = 0.0  # 0-1 of the memory limit
    memory_used_bytes: float = 0.0
    memory_peak: float = 0.0
    memory_rss: float = 0.0
    connected_clients: int = 0
    blocked_clients: int = 0
    total_connections: int = 0
    commands_processed: int = 0
    keyspace_hits: int = 0
    keyspace_misses: int = 0
    hit_rate: float = 0.0
    evicted_keys: int = 0
    expired_keys: int = 0
    total_keys: int = 0
    slowlog_length: int = 0


@dataclass
class LatencyMetrics:
    p50: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    avg: float = 0.0
    max: float = 0.0
    min: float = 0.0


@dataclass
class NetworkMetrics:
    bytes_in: float = 0.0  # bytes per second
    bytes_out: float = 0.0
    packets_in: float = 0.0
    packets_out: float = 0.0
    connections_active: int = 0
    latency: LatencyMetrics = field(default_factory=LatencyMetrics)


@dataclass
class ApplicationMetrics:
    requests_per_second: float = 0.0
    response_time: LatencyMetrics = field(default_factory=LatencyMetrics)
    error_rate: float = 0.0
    active_users: int = 0
    search_queries: int = 0
    vector_operations: int = 0
    cache_hit_rate: float = 0.0
    queue_length: int = 0
    worker_utilization: float = 0.0


@dataclass
class SystemMetrics:
    """Timestamped bundle of every sub-metric, produced once per tick."""

    timestamp: float = field(default_factory=epoch_now)
    cpu: CPUMetrics = field(default_factory=CPUMetrics)
    memory: MemoryMetrics = field(default_factory=MemoryMetrics)
    datastore: DatastoreMetrics = field(default_factory=DatastoreMetrics)
    network: NetworkMetrics = field(default_factory=NetworkMetrics)
    application: ApplicationMetrics = field(default_factory=ApplicationMetrics)

    def flatten(self) -> Dict[str, float]:
        """Map of the tracked metric names to their values in this snapshot."""
        return {
            "cpu.usage": self.cpu.usage,
            "cpu.load_average": self.cpu.load_average[0] if self.cpu.load_average else 0.0,
            "memory.usage": self.memory.usage,
            "memory.available": self.memory.available,
            "redis.memory_usage": self.datastore.memory_usage,
            "redis.connected_clients": float(self.datastore.connected_clients),
            "redis.hit_rate": self.datastore.hit_rate,
            "network.bytes_in": self.network.bytes_in,
            "network.bytes_out": self.network.bytes_out,
            "network.latency.p95": self.network.latency.p95,
            "application.requests_per_second": self.application.requests_per_second,
            "application.response_time.avg": self.application.response_time.avg,
            "application.error_rate": self.application.error_rate,
            "application.active_users": float(self.application.active_users),
        }

    def to_samples(self) -> List[MetricSample]:
        return [
            MetricSample(metric_name=name, value=float(value), timestamp=self.timestamp)
            for name, value in self.flatten().items()
        ]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


TRACKED_METRICS = tuple(SystemMetrics().flatten().keys())


class AggregationType(Enum):
    AVG = "avg"
    SUM = "sum"
    MIN = "min"
    MAX = "max"
    COUNT = "count"
    RATE = "rate"
    PERCENTILE = "percentile"


@dataclass(frozen=True)
class TimeRange:
    """Query window in epoch seconds with a bucket interval in seconds."""

    start: float
    end: float
    interval: float = 300

    @classmethod
    def last(cls, seconds: float, interval: float = 300, now: Optional[float] = None) -> "TimeRange":
        end = epoch_now() if now is None else now
        return cls(start=end - seconds, end=end, interval=interval)


@dataclass
class MetricsSummary:
    avg: float = 0.0
    min: float = 0.0
    max: float = 0.0
    sum: float = 0.0
    count: int = 0
    std_dev: float = 0.0
    percentiles: Dict[str, float] = field(default_factory=dict)


@dataclass
class MetricsAggregation:
    metric_name: str
    time_range: TimeRange
    aggregation_type: AggregationType
    values: List[float] = field(default_factory=list)
    timestamps: List[float] = field(default_factory=list)
    summary: MetricsSummary = field(default_factory=MetricsSummary)


class AlertOperator(str, Enum):
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    EQ = "eq"
    NE = "ne"


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class AlertCondition(BaseModel):
    operator: AlertOperator
    duration: int = 0  # seconds the condition must hold
    evaluation_window: int = 60


class MetricAlert(BaseModel):
    """Persisted alert raised against a metric threshold."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    metric_name: str
    condition: AlertCondition
    threshold: float
    current_value: Optional[float] = None
    severity: AlertSeverity
    message: str
    timestamp: datetime = Field(default_factory=utcnow)
    resolved: bool = False
    resolved_at: Optional[datetime] = None
