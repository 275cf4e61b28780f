"""
Persistence layer for the predictive optimization engine.

Provides the Redis-backed record and time-series store that every
component reads from and writes to.
"""

from .redis_store import OptimizationStore

__all__ = ["OptimizationStore"]
