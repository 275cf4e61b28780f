"""
Predictive Optimization Engine

An autonomic performance and cost optimization loop for a Redis-backed
service cluster: metrics collection, time-series prediction, anomaly and
bottleneck detection, resource and cost optimization, and a decision
orchestrator that prioritizes, auto-approves, executes and reports.

Version: 0.1.0
"""

__version__ = "0.1.0"
__description__ = "Predictive performance and cost optimization engine"

from predictive_optimization.config.settings import Settings, get_settings
from predictive_optimization.core.logging import get_logger, setup_logging

__all__ = [
    "__version__",
    "__description__",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
