"""
Anomaly detection.

Z-score and rule-based detection with context, root-cause and impact
enrichment, plus resolution feedback into per-metric models.
"""

from .anomaly_detector import AnomalyDetector
from .models import (
    Anomaly,
    AnomalyDetectionModel,
    AnomalySeverity,
    AnomalyStatus,
    AnomalyType,
    DetectionModelType,
    RootCauseCategory,
)

__all__ = [
    "AnomalyDetector",
    "Anomaly",
    "AnomalyDetectionModel",
    "AnomalySeverity",
    "AnomalyStatus",
    "AnomalyType",
    "DetectionModelType",
    "RootCauseCategory",
]
