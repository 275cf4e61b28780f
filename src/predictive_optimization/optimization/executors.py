"""
Execution ports for optimization actions and cost optimizations.

The optimizers never touch infrastructure directly: they hand approved work
to an executor and record whatever outcome it reports. ``SimulatedExecutor``
stands in for real infrastructure drivers; ``DeterministicExecutor`` gives
tests and dry runs a predictable outcome.
"""

import asyncio
import random
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import structlog

from .cost_models import CostOptimization
from .models import ComplexityLevel, ExecutionOutcome, OptimizationAction

logger = structlog.get_logger(__name__)

SIMULATED_DELAY: Dict[ComplexityLevel, float] = {
    ComplexityLevel.LOW: 1.0,
    ComplexityLevel.MEDIUM: 3.0,
    ComplexityLevel.HIGH: 10.0,
    ComplexityLevel.CRITICAL: 30.0,
}

FAILURE_RATE: Dict[ComplexityLevel, float] = {
    ComplexityLevel.LOW: 0.05,
    ComplexityLevel.MEDIUM: 0.1,
    ComplexityLevel.HIGH: 0.2,
    ComplexityLevel.CRITICAL: 0.3,
}

COST_SUCCESS_RATE = 0.85
MAX_COST_DELAY = 5.0
ROLLBACK_DELAY = 2.0


class ActionExecutor(ABC):
    """Applies resource optimization actions."""

    @abstractmethod
    async def execute_action(self, action: OptimizationAction) -> ExecutionOutcome:
        """Apply an action and report the outcome."""

    @abstractmethod
    async def rollback_action(self, action: OptimizationAction) -> None:
        """Undo a previously applied action."""


class CostExecutor(ABC):
    """Implements cost optimizations."""

    @abstractmethod
    async def implement(self, optimization: CostOptimization) -> ExecutionOutcome:
        """Carry out a cost optimization and report the outcome."""


class SimulatedExecutor(ActionExecutor, CostExecutor):
    """
    Randomized stand-in for infrastructure calls.

    Failure probability grows with action complexity; successful runs report
    a variance in [0.8, 1.2] of the expected impact. Delays are multiplied by
    ``time_scale`` so tests and demos can run them instantly.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
        time_scale: float = 1.0,
    ):
        self.rng = rng or random.Random(seed)
        self.time_scale = time_scale

    async def _sleep(self, seconds: float) -> None:
        if self.time_scale > 0:
            await asyncio.sleep(seconds * self.time_scale)

    def _variance(self) -> float:
        return 0.8 + self.rng.random() * 0.4

    async def execute_action(self, action: OptimizationAction) -> ExecutionOutcome:
        started = time.perf_counter()
        complexity = action.cost.complexity
        await self._sleep(SIMULATED_DELAY[complexity])

        if self.rng.random() < FAILURE_RATE[complexity]:
            return ExecutionOutcome(
                success=False,
                execution_time=time.perf_counter() - started,
                error=f"Optimization execution failed: {action.description}",
            )

        return ExecutionOutcome(
            success=True,
            variance=self._variance(),
            execution_time=time.perf_counter() - started,
        )

    async def rollback_action(self, action: OptimizationAction) -> None:
        await self._sleep(ROLLBACK_DELAY)
        logger.info("Simulated rollback finished", action_id=action.id)

    async def implement(self, optimization: CostOptimization) -> ExecutionOutcome:
        started = time.perf_counter()
        await self._sleep(min(optimization.implementation.total_duration, MAX_COST_DELAY))

        if self.rng.random() >= COST_SUCCESS_RATE:
            return ExecutionOutcome(
                success=False,
                execution_time=time.perf_counter() - started,
                error="Optimization implementation failed",
            )

        return ExecutionOutcome(
            success=True,
            variance=self._variance(),
            execution_time=time.perf_counter() - started,
        )


class DeterministicExecutor(ActionExecutor, CostExecutor):
    """Always reports the same outcome; records what it was asked to do."""

    def __init__(self, succeed: bool = True, variance: float = 1.0, error: str = "Simulated failure"):
        self.succeed = succeed
        self.variance = variance
        self.error = error
        self.executed: List[str] = []
        self.rolled_back: List[str] = []
        self.implemented: List[str] = []

    def _outcome(self) -> ExecutionOutcome:
        if self.succeed:
            return ExecutionOutcome(success=True, variance=self.variance)
        return ExecutionOutcome(success=False, error=self.error)

    async def execute_action(self, action: OptimizationAction) -> ExecutionOutcome:
        self.executed.append(action.id)
        return self._outcome()

    async def rollback_action(self, action: OptimizationAction) -> None:
        self.rolled_back.append(action.id)

    async def implement(self, optimization: CostOptimization) -> ExecutionOutcome:
        self.implemented.append(optimization.id)
        return self._outcome()


__all__ = [
    "ActionExecutor",
    "CostExecutor",
    "SimulatedExecutor",
    "DeterministicExecutor",
]
