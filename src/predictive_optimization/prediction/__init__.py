"""
Performance prediction.

Per-metric statistical forecasting and resource bottleneck prediction.
"""

from .models import (
    BottleneckPrediction,
    BottleneckSeverity,
    MitigationType,
    PerformancePrediction,
    PredictionModel,
    PredictionType,
    ResourceType,
    TrendDirection,
)
from .performance_predictor import PerformancePredictor

__all__ = [
    "PerformancePredictor",
    "PerformancePrediction",
    "PredictionModel",
    "PredictionType",
    "BottleneckPrediction",
    "BottleneckSeverity",
    "MitigationType",
    "ResourceType",
    "TrendDirection",
]
