"""
Metrics Monitoring Module

This module provides the metrics side of the optimization loop:
- Host, datastore and application sub-collectors
- Time-series persistence and range aggregation
- Nearest-rank summary statistics
- Threshold alerts
"""

from .metrics_collector import MetricsCollector
from .models import (
    AggregationType,
    AlertSeverity,
    MetricAlert,
    MetricSample,
    MetricsAggregation,
    SystemMetrics,
    TimeRange,
)
from .sources import ApplicationMetricsRecorder, DatastoreSource, SystemResourceSource

__all__ = [
    "MetricsCollector",
    "MetricSample",
    "MetricAlert",
    "MetricsAggregation",
    "SystemMetrics",
    "TimeRange",
    "AggregationType",
    "AlertSeverity",
    "ApplicationMetricsRecorder",
    "DatastoreSource",
    "SystemResourceSource",
]
