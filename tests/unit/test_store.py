"""
Unit tests for the Redis-backed optimization store.
"""

import time
from unittest.mock import Mock, patch

import pytest
from pydantic import BaseModel

from predictive_optimization.core.exceptions import RecordNotFoundError, StoreUnavailableError
from predictive_optimization.storage import OptimizationStore


class Widget(BaseModel):
    id: str
    size: int = 1


class TestRecords:
    """Test record persistence."""

    @pytest.mark.asyncio
    async def test_save_and_load(self, store):
        """Test that a saved record loads back equal."""
        await store.save("widget", "w1", Widget(id="w1", size=3))

        loaded = await store.load("widget", "w1", Widget)
        assert loaded == Widget(id="w1", size=3)

    @pytest.mark.asyncio
    async def test_load_missing_returns_none(self, store):
        assert await store.load("widget", "nope", Widget) is None

    @pytest.mark.asyncio
    async def test_require_missing_raises(self, store):
        """Test that require names the missing record."""
        with pytest.raises(RecordNotFoundError) as exc_info:
            await store.require("widget", "nope", Widget)

        assert exc_info.value.kind == "widget"
        assert exc_info.value.record_id == "nope"

    @pytest.mark.asyncio
    async def test_records_are_hashes_with_data_field(self, store, redis_client):
        """Test the on-disk layout of a record."""
        await store.save("widget", "w1", Widget(id="w1"))

        assert await redis_client.type("widget:w1") == "hash"
        assert "data" in await redis_client.hgetall("widget:w1")

    @pytest.mark.asyncio
    async def test_ttl_and_persist(self, store):
        """Test expiry handling."""
        await store.save("widget", "w1", Widget(id="w1"), ttl=600)
        assert 0 < await store.ttl("widget", "w1") <= 600

        await store.persist("widget", "w1")
        assert await store.ttl("widget", "w1") == -1

        await store.set_ttl("widget", "w1", 60)
        assert 0 < await store.ttl("widget", "w1") <= 60

    @pytest.mark.asyncio
    async def test_list_only_returns_kind(self, store):
        """Test that listing scans one kind."""
        await store.save("widget", "a", Widget(id="a"))
        await store.save("widget", "b", Widget(id="b"))
        await store.save("gadget", "c", Widget(id="c"))

        widgets = await store.list("widget", Widget)
        assert sorted(w.id for w in widgets) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.save("widget", "a", Widget(id="a"))
        await store.delete("widget", "a")

        assert await store.load("widget", "a", Widget) is None


class TestTimeSeries:
    """Test metric sample storage."""

    @pytest.mark.asyncio
    async def test_range_samples(self, store):
        """Test that a range returns only samples within bounds, in order."""
        now = time.time()
        await store.add_sample("cpu.usage", 0.1, now - 300)
        await store.add_sample("cpu.usage", 0.2, now - 200)
        await store.add_sample("cpu.usage", 0.3, now - 100)

        samples = await store.range_samples("cpu.usage", now - 250, now)
        assert [value for _, value in samples] == [0.2, 0.3]

    @pytest.mark.asyncio
    async def test_equal_values_at_different_times_are_kept(self, store):
        now = time.time()
        await store.add_sample("cpu.usage", 0.5, now - 20)
        await store.add_sample("cpu.usage", 0.5, now - 10)

        assert len(await store.range_samples("cpu.usage", now - 60, now)) == 2

    @pytest.mark.asyncio
    async def test_identical_samples_in_one_millisecond_are_kept(self, store):
        """Test that repeated readings at the same instant are not merged."""
        now = time.time()
        await store.add_sample("application.response_time.avg", 40.0, now)
        await store.add_sample("application.response_time.avg", 40.0, now)

        samples = await store.range_samples("application.response_time.avg", now - 1, now + 1)
        assert [value for _, value in samples] == [40.0, 40.0]

    @pytest.mark.asyncio
    async def test_range_can_exclude_its_end(self, store):
        """Test that an exclusive end leaves out samples stamped exactly at it."""
        now = float(int(time.time()))
        await store.add_sample("cpu.usage", 0.2, now - 10)
        await store.add_sample("cpu.usage", 0.9, now)

        inclusive = await store.range_samples("cpu.usage", now - 60, now)
        exclusive = await store.range_samples("cpu.usage", now - 60, now, include_end=False)

        assert [value for _, value in inclusive] == [0.2, 0.9]
        assert [value for _, value in exclusive] == [0.2]

    @pytest.mark.asyncio
    async def test_latest_sample(self, store):
        assert await store.latest_sample("cpu.usage") is None

        now = float(int(time.time()))
        await store.add_sample("cpu.usage", 0.3, now - 30)
        await store.add_sample("cpu.usage", 0.7, now)

        assert await store.latest_sample("cpu.usage") == (now, 0.7)

    @pytest.mark.asyncio
    async def test_default_retention_keeps_a_week(self, store):
        """Test that week-old samples survive for the prediction history."""
        now = time.time()
        await store.add_sample("cpu.usage", 0.4, now - 8 * 86400)
        await store.add_sample("cpu.usage", 0.5, now)

        samples = await store.range_samples("cpu.usage", now - 9 * 86400, now + 1)
        assert [value for _, value in samples] == [0.4, 0.5]

    @pytest.mark.asyncio
    async def test_retention_trims_old_samples(self, redis_client):
        """Test that samples older than retention are dropped on write."""
        store = OptimizationStore(client=redis_client, retention_seconds=100)
        await store.connect()

        now = time.time()
        await store.add_sample("memory.usage", 0.4, now - 500)
        await store.add_sample("memory.usage", 0.5, now)

        samples = await store.range_samples("memory.usage", now - 1000, now + 1)
        assert [value for _, value in samples] == [0.5]

    @pytest.mark.asyncio
    async def test_labels(self, store):
        await store.add_sample("cpu.usage", 0.1, labels={"host": "a"})

        assert await store.sample_labels("cpu.usage") == {"host": "a"}


class TestCoordination:
    """Test cooldown claims."""

    @pytest.mark.asyncio
    async def test_cooldown_claimed_once(self, store):
        """Test that a second claim inside the window fails."""
        assert await store.acquire_cooldown("strategy:1", 60) is True
        assert await store.acquire_cooldown("strategy:1", 60) is False
        assert await store.acquire_cooldown("strategy:2", 60) is True


class TestStoreTimings:
    """Test that store calls report their duration."""

    @pytest.mark.asyncio
    async def test_reads_and_writes_are_timed(self, store):
        perf_logger = Mock()
        with patch("predictive_optimization.storage.redis_store.perf_logger", perf_logger):
            await store.save("widget", "w1", Widget(id="w1"))
            await store.load("widget", "w1", Widget)

        calls = perf_logger.log_store_call.call_args_list
        assert [c[0][0] for c in calls] == ["save", "load"]
        assert all(c[0][1] == "widget:w1" for c in calls)
        assert all(c[0][2] >= 0 for c in calls)
        assert calls[0][1]["attempts"] == 1


class TestConnection:
    """Test connection lifecycle."""

    @pytest.mark.asyncio
    async def test_ping(self, store):
        assert await store.ping() is True

    @pytest.mark.asyncio
    async def test_unconnected_store_raises(self):
        """Test that using a store before connect fails clearly."""
        store = OptimizationStore()

        with pytest.raises(StoreUnavailableError):
            await store.save("widget", "w1", Widget(id="w1"))

    @pytest.mark.asyncio
    async def test_from_settings(self, test_settings, redis_client):
        store = OptimizationStore.from_settings(test_settings, client=redis_client)

        assert store.redis_url == "redis://localhost:6379/15"
        assert store.retry_attempts == test_settings.store.retry_attempts
