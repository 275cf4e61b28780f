"""
Unit tests for summary statistics.
"""

import pytest

from predictive_optimization.monitoring.sources import calculate_hit_rate
from predictive_optimization.monitoring.statistics import (
    latency_distribution,
    linear_slope,
    mean_and_std,
    nearest_rank,
    summarize,
)


class TestNearestRank:
    """Test nearest-rank percentiles."""

    def test_examples(self):
        values = list(range(1, 101))

        assert nearest_rank(values, 0.5) == 50
        assert nearest_rank(values, 0.95) == 95
        assert nearest_rank(values, 0.99) == 99

    def test_small_series(self):
        assert nearest_rank([7.0], 0.99) == 7.0
        assert nearest_rank([1.0, 2.0], 0.5) == 1.0

    def test_empty(self):
        assert nearest_rank([], 0.5) == 0.0


class TestSummarize:
    """Test series summaries."""

    def test_summary(self):
        """Test avg/min/max/sum/count and population stddev."""
        summary = summarize([2, 4, 4, 4, 5, 5, 7, 9])

        assert summary.avg == 5
        assert summary.min == 2
        assert summary.max == 9
        assert summary.sum == 40
        assert summary.count == 8
        assert summary.std_dev == pytest.approx(2.0)
        assert summary.percentiles["p50"] == 4

    def test_empty(self):
        summary = summarize([])

        assert summary.count == 0
        assert summary.avg == 0.0


class TestLatencyDistribution:
    def test_distribution(self):
        latency = latency_distribution([10, 20, 30, 40])

        assert latency.min == 10
        assert latency.max == 40
        assert latency.avg == 25
        assert latency.p50 == 20
        assert latency.p99 == 40

    def test_empty(self):
        assert latency_distribution([]).p95 == 0.0


class TestSlope:
    """Test least-squares slope."""

    def test_linear(self):
        assert linear_slope([1, 3, 5, 7]) == pytest.approx(2.0)

    def test_flat_and_short(self):
        assert linear_slope([4, 4, 4]) == 0.0
        assert linear_slope([4]) == 0.0

    def test_mean_and_std(self):
        assert mean_and_std([]) == (0.0, 0.0)
        assert mean_and_std([1, 1, 1]) == (1.0, 0.0)


class TestHitRate:
    def test_hit_rate(self):
        assert calculate_hit_rate(3, 1) == 0.75

    def test_no_traffic(self):
        assert calculate_hit_rate(0, 0) == 0.0
