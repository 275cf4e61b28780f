"""
Sub-collectors feeding the metrics collector.

Each source adapts one producer of raw readings (the host, the Redis server,
the application itself) into a typed sub-snapshot. A source may raise; the
collector replaces a failed reading with its zero-valued default.
"""

import time
from collections import deque
from typing import Deque, Optional, Tuple

import psutil
import structlog

from predictive_optimization.storage.redis_store import OptimizationStore

from .models import (
    ApplicationMetrics,
    CPUMetrics,
    DatastoreMetrics,
    LatencyMetrics,
    MemoryMetrics,
    NetworkMetrics,
)
from .statistics import latency_distribution

logger = structlog.get_logger(__name__)


class SystemResourceSource:
    """Host CPU, memory and network readings from psutil."""

    def __init__(self) -> None:
        self._last_net: Optional[Tuple[float, int, int, int, int]] = None
        # prime cpu_percent so the first real reading is meaningful
        psutil.cpu_percent(interval=None)

    async def collect_cpu(self) -> CPUMetrics:
        try:
            load_average = list(psutil.getloadavg())
        except (AttributeError, OSError):
            load_average = [0.0, 0.0, 0.0]

        return CPUMetrics(
            usage=psutil.cpu_percent(interval=None) / 100.0,
            load_average=load_average,
            cores=psutil.cpu_count() or 0,
            processes=len(psutil.pids()),
        )

    async def collect_memory(self) -> MemoryMetrics:
        memory = psutil.virtual_memory()
        swap = psutil.swap_memory()
        return MemoryMetrics(
            used=float(memory.used),
            total=float(memory.total),
            available=float(memory.available),
            usage=memory.percent / 100.0,
            swap_used=float(swap.used),
            swap_total=float(swap.total),
        )

    async def collect_network(self) -> NetworkMetrics:
        counters = psutil.net_io_counters()
        now = time.monotonic()
        current = (now, counters.bytes_recv, counters.bytes_sent, counters.packets_recv, counters.packets_sent)

        metrics = NetworkMetrics()
        if self._last_net is not None:
            elapsed = max(now - self._last_net[0], 1e-6)
            metrics.bytes_in = max(0.0, (current[1] - self._last_net[1]) / elapsed)
            metrics.bytes_out = max(0.0, (current[2] - self._last_net[2]) / elapsed)
            metrics.packets_in = max(0.0, (current[3] - self._last_net[3]) / elapsed)
            metrics.packets_out = max(0.0, (current[4] - self._last_net[4]) / elapsed)
        self._last_net = current

        try:
            metrics.connections_active = len(psutil.net_connections(kind="inet"))
        except (psutil.AccessDenied, OSError):
            metrics.connections_active = 0

        return metrics


class DatastoreSource:
    """Redis server statistics plus ping round-trip latency."""

    def __init__(self, store: OptimizationStore, latency_window: int = 120):
        self.store = store
        self._ping_latencies: Deque[float] = deque(maxlen=latency_window)

    async def collect(self) -> DatastoreMetrics:
        info = await self.store.server_info()

        used_memory = float(info.get("used_memory", 0) or 0)
        limit = float(info.get("maxmemory", 0) or 0)
        if limit <= 0:
            limit = float(info.get("total_system_memory", 0) or 0) or float(psutil.virtual_memory().total)

        hits = int(info.get("keyspace_hits", 0) or 0)
        misses = int(info.get("keyspace_misses", 0) or 0)

        return DatastoreMetrics(
            memory_usage=used_memory / limit if limit else 0.0,
            memory_used_bytes=used_memory,
            memory_peak=float(info.get("used_memory_peak", 0) or 0),
            memory_rss=float(info.get("used_memory_rss", 0) or 0),
            connected_clients=int(info.get("connected_clients", 0) or 0),
            blocked_clients=int(info.get("blocked_clients", 0) or 0),
            total_connections=int(info.get("total_connections_received", 0) or 0),
            commands_processed=int(info.get("total_commands_processed", 0) or 0),
            keyspace_hits=hits,
            keyspace_misses=misses,
            hit_rate=calculate_hit_rate(hits, misses),
            evicted_keys=int(info.get("evicted_keys", 0) or 0),
            expired_keys=int(info.get("expired_keys", 0) or 0),
            total_keys=await self.store.key_count(),
            slowlog_length=await self.store.slowlog_length(),
        )

    async def measure_latency(self) -> LatencyMetrics:
        """Ping the store and return the latency distribution in milliseconds."""
        started = time.perf_counter()
        if await self.store.ping():
            self._ping_latencies.append((time.perf_counter() - started) * 1000)
        return latency_distribution(self._ping_latencies)


def calculate_hit_rate(hits: int, misses: int) -> float:
    total = hits + misses
    return hits / total if total > 0 else 0.0


class ApplicationMetricsRecorder:
    """
    Sliding-window application statistics fed by the host service.

    The service calls ``record_request`` for each handled request and the
    setters for gauges it owns; ``collect`` summarizes the last window.
    """

    def __init__(self, window_seconds: float = 60.0, max_requests: int = 10000):
        self.window_seconds = window_seconds
        self._requests: Deque[Tuple[float, float, bool]] = deque(maxlen=max_requests)
        self._cache_lookups: Deque[Tuple[float, bool]] = deque(maxlen=max_requests)
        self._search_queries: Deque[float] = deque(maxlen=max_requests)
        self._vector_operations: Deque[float] = deque(maxlen=max_requests)
        self.active_users = 0
        self.queue_length = 0
        self.worker_utilization = 0.0

    def record_request(self, latency_ms: float, error: bool = False, timestamp: Optional[float] = None) -> None:
        self._requests.append((time.time() if timestamp is None else timestamp, float(latency_ms), error))

    def record_cache_lookup(self, hit: bool) -> None:
        self._cache_lookups.append((time.time(), hit))

    def record_search_query(self) -> None:
        self._search_queries.append(time.time())

    def record_vector_operation(self) -> None:
        self._vector_operations.append(time.time())

    def set_active_users(self, count: int) -> None:
        self.active_users = max(0, int(count))

    def set_queue_length(self, length: int) -> None:
        self.queue_length = max(0, int(length))

    def set_worker_utilization(self, utilization: float) -> None:
        self.worker_utilization = min(1.0, max(0.0, float(utilization)))

    async def collect(self, now: Optional[float] = None) -> ApplicationMetrics:
        now = time.time() if now is None else now
        cutoff = now - self.window_seconds

        requests = [r for r in self._requests if r[0] >= cutoff]
        lookups = [hit for ts, hit in self._cache_lookups if ts >= cutoff]
        errors = sum(1 for r in requests if r[2])

        return ApplicationMetrics(
            requests_per_second=len(requests) / self.window_seconds,
            response_time=latency_distribution(r[1] for r in requests),
            error_rate=errors / len(requests) if requests else 0.0,
            active_users=self.active_users,
            search_queries=sum(1 for ts in self._search_queries if ts >= cutoff),
            vector_operations=sum(1 for ts in self._vector_operations if ts >= cutoff),
            cache_hit_rate=sum(1 for hit in lookups if hit) / len(lookups) if lookups else 0.0,
            queue_length=self.queue_length,
            worker_utilization=self.worker_utilization,
        )


__all__ = [
    "SystemResourceSource",
    "DatastoreSource",
    "ApplicationMetricsRecorder",
    "calculate_hit_rate",
]
