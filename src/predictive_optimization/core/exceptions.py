"""
Core exception classes for the predictive optimization engine.

This module defines custom exceptions used throughout the system
for better error handling and debugging.
"""

from typing import Iterable, Optional


class OptimizationEngineError(Exception):
    """Base exception for all predictive optimization errors."""
    pass


class ConfigurationError(OptimizationEngineError):
    """Raised when there's a configuration error."""
    pass


class StoreError(OptimizationEngineError):
    """Raised when a persistent store operation fails."""
    pass


class StoreUnavailableError(StoreError):
    """Raised when the store cannot be reached or a write keeps failing."""
    pass


class RecordNotFoundError(OptimizationEngineError):
    """Raised when a requested record does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} '{record_id}' not found")


class InvalidStateError(OptimizationEngineError):
    """Raised when a state transition is attempted from the wrong state."""

    def __init__(
        self,
        kind: str,
        record_id: str,
        current: str,
        expected: Optional[Iterable[str]] = None,
    ):
        self.kind = kind
        self.record_id = record_id
        self.current = current
        self.expected = list(expected or [])

        message = f"{kind} '{record_id}' is {current}"
        if self.expected:
            message += f", expected {' or '.join(self.expected)}"
        super().__init__(message)


class ExecutionError(OptimizationEngineError):
    """Raised when an executor fails to apply a change."""
    pass


class InsufficientDataError(OptimizationEngineError):
    """Raised when a computation does not have enough history."""
    pass
