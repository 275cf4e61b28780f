"""
Redis-backed persistent store shared by every optimization component.

Records are kept as hashes at ``<kind>:<id>`` whose ``data`` field holds the
pydantic JSON dump of the record; time series are sorted sets at
``ts:<metric>`` scored by epoch milliseconds. The store is the single source
of truth between components, so nothing else caches writable copies.
"""

import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type, TypeVar
from uuid import uuid4

import redis.asyncio as redis
import structlog
from pydantic import BaseModel
from redis.exceptions import RedisError
from tenacity import (
    AsyncRetrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from predictive_optimization.core.exceptions import (
    RecordNotFoundError,
    StoreError,
    StoreUnavailableError,
)
from predictive_optimization.core.logging import get_performance_logger

logger = structlog.get_logger(__name__)
perf_logger = get_performance_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)
T = TypeVar("T")

DATA_FIELD = "data"
SERIES_PREFIX = "ts"
LABELS_PREFIX = "ts:labels"


def _decode(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def _parse_member(member: Any) -> Tuple[float, float]:
    timestamp_ms, value = _decode(member).split(":")[:2]
    return int(timestamp_ms) / 1000.0, float(value)


class OptimizationStore:
    """
    Async persistence layer over Redis.

    Writes are retried with exponential backoff and surface as
    ``StoreUnavailableError`` once retries are exhausted. Reads raise
    ``StoreError`` and leave the fail-open decision to the caller.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        client: Optional[redis.Redis] = None,
        max_connections: int = 20,
        socket_timeout: float = 5.0,
        retry_attempts: int = 3,
        retention_seconds: int = 14 * 86400,
    ):
        self.redis_url = redis_url
        self.max_connections = max_connections
        self.socket_timeout = socket_timeout
        self.retry_attempts = retry_attempts
        self.retention_seconds = retention_seconds

        self._client: Optional[redis.Redis] = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Any, client: Optional[redis.Redis] = None) -> "OptimizationStore":
        """Build a store from the ``store`` settings group."""
        store_settings = settings.store
        return cls(
            redis_url=str(store_settings.redis_url),
            client=client,
            max_connections=store_settings.redis_max_connections,
            socket_timeout=store_settings.socket_timeout,
            retry_attempts=store_settings.retry_attempts,
            retention_seconds=store_settings.metrics_retention_seconds,
        )

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise StoreUnavailableError("Store is not connected")
        return self._client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(RedisError),
        reraise=True,
    )
    async def _ping_with_retry(self) -> None:
        await self.client.ping()

    async def connect(self) -> None:
        """
        Connect to Redis and verify the connection.

        Raises:
            StoreUnavailableError: If Redis cannot be reached after retries
        """
        if self._client is None:
            self._client = redis.from_url(
                self.redis_url,
                max_connections=self.max_connections,
                socket_connect_timeout=self.socket_timeout,
                socket_timeout=self.socket_timeout,
                decode_responses=True,
                health_check_interval=30,
            )
            self._owns_client = True

        try:
            await self._ping_with_retry()
        except RedisError as e:
            logger.error("Failed to connect to Redis", redis_url=self.redis_url, error=str(e))
            raise StoreUnavailableError(f"Redis unreachable at {self.redis_url}") from e

        logger.info("Store connected", redis_url=self.redis_url)

    async def disconnect(self) -> None:
        """Close the Redis connection if this store created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        logger.info("Store disconnected")

    async def ping(self) -> bool:
        """Return True when Redis answers a ping."""
        try:
            return bool(await self.client.ping())
        except (RedisError, StoreUnavailableError):
            return False

    async def _write(self, operation: str, key: str, func: Callable[[], Awaitable[T]]) -> T:
        start_time = time.perf_counter()
        attempts = 0
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type(RedisError),
                reraise=True,
            ):
                with attempt:
                    attempts += 1
                    result = await func()
                    perf_logger.log_store_call(
                        operation, key, (time.perf_counter() - start_time) * 1000, attempts=attempts
                    )
                    return result
        except RedisError as e:
            logger.error("Store write failed", operation=operation, key=key, attempts=attempts, error=str(e))
            raise StoreUnavailableError(f"{operation} failed for {key}: {e}") from e
        raise StoreUnavailableError(f"{operation} failed for {key}")

    async def _read(self, operation: str, key: str, func: Callable[[], Awaitable[T]]) -> T:
        start_time = time.perf_counter()
        try:
            result = await func()
        except RedisError as e:
            logger.warning("Store read failed", operation=operation, key=key, error=str(e))
            raise StoreError(f"{operation} failed for {key}: {e}") from e
        perf_logger.log_store_call(operation, key, (time.perf_counter() - start_time) * 1000)
        return result

    @staticmethod
    def record_key(kind: str, record_id: str) -> str:
        return f"{kind}:{record_id}"

    # Records

    async def save(
        self,
        kind: str,
        record_id: str,
        record: BaseModel,
        ttl: Optional[int] = None,
    ) -> None:
        """Persist a record, optionally expiring it after ``ttl`` seconds."""
        key = self.record_key(kind, record_id)
        payload = record.model_dump_json()

        async def op() -> None:
            await self.client.hset(key, mapping={DATA_FIELD: payload, "updated_at": str(time.time())})
            if ttl:
                await self.client.expire(key, int(ttl))

        await self._write("save", key, op)

    async def load(self, kind: str, record_id: str, model_cls: Type[RecordT]) -> Optional[RecordT]:
        """Load a record, returning None when it does not exist."""
        key = self.record_key(kind, record_id)
        raw = await self._read("load", key, lambda: self.client.hget(key, DATA_FIELD))
        if raw is None:
            return None
        return model_cls.model_validate_json(_decode(raw))

    async def require(self, kind: str, record_id: str, model_cls: Type[RecordT]) -> RecordT:
        """Load a record or raise ``RecordNotFoundError``."""
        record = await self.load(kind, record_id, model_cls)
        if record is None:
            raise RecordNotFoundError(kind, record_id)
        return record

    async def delete(self, kind: str, record_id: str) -> None:
        key = self.record_key(kind, record_id)
        await self._write("delete", key, lambda: self.client.delete(key))

    async def set_ttl(self, kind: str, record_id: str, ttl: int) -> None:
        key = self.record_key(kind, record_id)
        await self._write("expire", key, lambda: self.client.expire(key, int(ttl)))

    async def persist(self, kind: str, record_id: str) -> None:
        """Remove any expiry from a record."""
        key = self.record_key(kind, record_id)
        await self._write("persist", key, lambda: self.client.persist(key))

    async def ttl(self, kind: str, record_id: str) -> int:
        key = self.record_key(kind, record_id)
        return int(await self._read("ttl", key, lambda: self.client.ttl(key)))

    async def list(self, kind: str, model_cls: Type[RecordT]) -> List[RecordT]:
        """Load every record of a kind."""
        pattern = f"{kind}:*"

        async def op() -> List[str]:
            return [_decode(key) async for key in self.client.scan_iter(match=pattern, count=500)]

        keys = await self._read("scan", pattern, op)
        records: List[RecordT] = []
        for key in keys:
            raw = await self._read("load", key, lambda key=key: self.client.hget(key, DATA_FIELD))
            if raw is None:
                continue
            records.append(model_cls.model_validate_json(_decode(raw)))
        return records

    # Time series

    async def add_sample(
        self,
        metric: str,
        value: float,
        timestamp: Optional[float] = None,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        """Append a sample to a metric series and trim past retention."""
        timestamp = time.time() if timestamp is None else timestamp
        timestamp_ms = int(timestamp * 1000)
        key = f"{SERIES_PREFIX}:{metric}"
        member = f"{timestamp_ms}:{float(value)!r}:{uuid4().hex[:8]}"
        cutoff_ms = timestamp_ms - self.retention_seconds * 1000

        async def op() -> None:
            await self.client.zadd(key, {member: timestamp_ms})
            await self.client.zremrangebyscore(key, "-inf", f"({cutoff_ms}")
            if labels:
                await self.client.hset(f"{LABELS_PREFIX}:{metric}", mapping=labels)

        await self._write("add_sample", key, op)

    async def range_samples(
        self,
        metric: str,
        start: float,
        end: float,
        include_end: bool = True,
    ) -> List[Tuple[float, float]]:
        """Return ``(timestamp, value)`` pairs between ``start`` and ``end`` seconds."""
        key = f"{SERIES_PREFIX}:{metric}"
        end_ms = int(end * 1000)
        upper = end_ms if include_end else f"({end_ms}"
        members = await self._read(
            "range_samples",
            key,
            lambda: self.client.zrangebyscore(key, int(start * 1000), upper),
        )
        return [_parse_member(member) for member in members]

    async def latest_sample(self, metric: str) -> Optional[Tuple[float, float]]:
        """Return the newest ``(timestamp, value)`` pair of a series, if any."""
        key = f"{SERIES_PREFIX}:{metric}"
        members = await self._read("latest_sample", key, lambda: self.client.zrevrange(key, 0, 0))
        if not members:
            return None
        return _parse_member(members[0])

    async def sample_labels(self, metric: str) -> Dict[str, str]:
        key = f"{LABELS_PREFIX}:{metric}"
        raw = await self._read("labels", key, lambda: self.client.hgetall(key))
        return {_decode(k): _decode(v) for k, v in raw.items()}

    # Coordination

    async def acquire_cooldown(self, key: str, seconds: int) -> bool:
        """Claim a cooldown window; False when one is already active."""
        full_key = f"cooldown:{key}"
        acquired = await self._write(
            "acquire_cooldown",
            full_key,
            lambda: self.client.set(full_key, str(time.time()), nx=True, ex=int(seconds)),
        )
        return bool(acquired)

    # Server statistics

    async def server_info(self) -> Dict[str, Any]:
        return await self._read("info", "INFO", lambda: self.client.info())

    async def key_count(self) -> int:
        return int(await self._read("dbsize", "DBSIZE", lambda: self.client.dbsize()))

    async def slowlog_length(self) -> int:
        return int(await self._read("slowlog_len", "SLOWLOG", lambda: self.client.slowlog_len()))


__all__ = ["OptimizationStore"]
