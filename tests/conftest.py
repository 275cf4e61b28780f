"""
Pytest configuration and fixtures for the predictive optimization tests.

Every component runs against an in-memory fakeredis server, so the suite
needs no running Redis.
"""

import os
import time
from typing import Iterable, Optional

import fakeredis
import pytest

from predictive_optimization.core.logging import setup_logging
from predictive_optimization.detection import AnomalyDetector
from predictive_optimization.monitoring import MetricsCollector
from predictive_optimization.optimization import (
    CostOptimizer,
    DeterministicExecutor,
    OptimizationEngine,
    ResourceOptimizer,
    StaticCostSource,
)
from predictive_optimization.prediction import PerformancePredictor
from predictive_optimization.storage import OptimizationStore


@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """Set up logging for tests."""
    setup_logging(log_level="DEBUG", environment="testing")


@pytest.fixture
def test_settings():
    """Create test settings with safe defaults."""
    test_env = {
        "ENVIRONMENT": "testing",
        "DEBUG": "true",
        "LOG_LEVEL": "DEBUG",
        "REDIS_URL": "redis://localhost:6379/15",
    }

    original_env = {}
    for key, value in test_env.items():
        original_env[key] = os.environ.get(key)
        os.environ[key] = value

    try:
        from predictive_optimization.config.settings import get_settings
        get_settings.cache_clear()
        yield get_settings()
    finally:
        for key, value in original_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

        get_settings.cache_clear()


@pytest.fixture
def redis_client():
    """In-memory async Redis client."""
    return fakeredis.FakeAsyncRedis(decode_responses=True)


@pytest.fixture
async def store(redis_client) -> OptimizationStore:
    """Connected store backed by fakeredis."""
    store = OptimizationStore(client=redis_client, retry_attempts=1)
    await store.connect()
    yield store
    await store.disconnect()


@pytest.fixture
def executor() -> DeterministicExecutor:
    """Executor that always succeeds at exactly the expected impact."""
    return DeterministicExecutor(succeed=True, variance=1.0)


@pytest.fixture
def failing_executor() -> DeterministicExecutor:
    return DeterministicExecutor(succeed=False, error="boom")


@pytest.fixture
def collector(store) -> MetricsCollector:
    return MetricsCollector(store)


@pytest.fixture
def predictor(store, collector) -> PerformancePredictor:
    return PerformancePredictor(store, collector)


@pytest.fixture
def detector(store, collector) -> AnomalyDetector:
    return AnomalyDetector(store, collector)


@pytest.fixture
def resource_optimizer(store, executor) -> ResourceOptimizer:
    return ResourceOptimizer(store, executor=executor)


@pytest.fixture
def cost_source() -> StaticCostSource:
    return StaticCostSource()


@pytest.fixture
def cost_optimizer(store, executor, cost_source) -> CostOptimizer:
    return CostOptimizer(store, executor=executor, source=cost_source)


@pytest.fixture
def engine(store, collector, predictor, detector, resource_optimizer, cost_optimizer) -> OptimizationEngine:
    return OptimizationEngine(store, collector, predictor, detector, resource_optimizer, cost_optimizer)


async def add_series(
    store: OptimizationStore,
    metric_name: str,
    values: Iterable[float],
    spacing: float = 300,
    end: Optional[float] = None,
) -> None:
    """Write ``values`` oldest first, one per ``spacing`` seconds, ending just before ``end``."""
    values = list(values)
    end = time.time() if end is None else end
    for i, value in enumerate(values):
        timestamp = end - (len(values) - i) * spacing
        await store.add_sample(metric_name, value, timestamp)


@pytest.fixture
def sample_series():
    """Expose the series helper to tests."""
    return add_series


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on file location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
