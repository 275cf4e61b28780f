"""Deterministic summary statistics over metric series."""

import math
from typing import Dict, Iterable, Sequence

import numpy as np

from .models import LatencyMetrics, MetricsSummary

SUMMARY_PERCENTILES = {"p50": 0.5, "p90": 0.9, "p95": 0.95, "p99": 0.99}


def nearest_rank(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of an already sorted sequence."""
    if not sorted_values:
        return 0.0
    index = max(0, math.ceil(len(sorted_values) * p) - 1)
    return float(sorted_values[min(index, len(sorted_values) - 1)])


def summarize(values: Iterable[float]) -> MetricsSummary:
    """avg/min/max/sum/count, population stddev and nearest-rank percentiles."""
    data = np.asarray(list(values), dtype=float)
    if data.size == 0:
        return MetricsSummary()

    ordered = np.sort(data).tolist()
    percentiles: Dict[str, float] = {
        name: nearest_rank(ordered, p) for name, p in SUMMARY_PERCENTILES.items()
    }

    return MetricsSummary(
        avg=float(data.mean()),
        min=float(data.min()),
        max=float(data.max()),
        sum=float(data.sum()),
        count=int(data.size),
        std_dev=float(data.std()),
        percentiles=percentiles,
    )


def latency_distribution(values: Iterable[float]) -> LatencyMetrics:
    data = sorted(float(v) for v in values)
    if not data:
        return LatencyMetrics()

    return LatencyMetrics(
        p50=nearest_rank(data, 0.5),
        p95=nearest_rank(data, 0.95),
        p99=nearest_rank(data, 0.99),
        avg=sum(data) / len(data),
        max=data[-1],
        min=data[0],
    )


def linear_slope(values: Sequence[float]) -> float:
    """Least-squares slope of the values against their index."""
    n = len(values)
    if n < 2:
        return 0.0

    x = np.arange(n, dtype=float)
    y = np.asarray(values, dtype=float)
    denominator = n * float(np.sum(x * x)) - float(np.sum(x)) ** 2
    if denominator == 0:
        return 0.0
    return (n * float(np.sum(x * y)) - float(np.sum(x)) * float(np.sum(y))) / denominator


def mean_and_std(values: Sequence[float]) -> tuple:
    if not values:
        return 0.0, 0.0
    data = np.asarray(values, dtype=float)
    return float(data.mean()), float(data.std())
