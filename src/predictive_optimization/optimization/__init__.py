"""
Optimization Module

Turns findings into remediation:
- Resource optimizer (actions, execution, rollback, configuration history)
- Cost optimizer (savings discovery, forecasts, budget alerts)
- Optimization engine (decisions, auto-approval, reports)
- Executor ports for real or simulated infrastructure
"""

from .cost_optimizer import CostDataSource, CostOptimizer, StaticCostSource
from .decisions import (
    DecisionPriority,
    DecisionStatus,
    DecisionType,
    OptimizationDecision,
    OptimizationReport,
    ReportPeriodType,
)
from .engine import OptimizationEngine
from .executors import ActionExecutor, CostExecutor, DeterministicExecutor, SimulatedExecutor
from .resource_optimizer import ResourceOptimizer

__all__ = [
    "OptimizationEngine",
    "ResourceOptimizer",
    "CostOptimizer",
    "CostDataSource",
    "StaticCostSource",
    "ActionExecutor",
    "CostExecutor",
    "SimulatedExecutor",
    "DeterministicExecutor",
    "OptimizationDecision",
    "OptimizationReport",
    "DecisionPriority",
    "DecisionStatus",
    "DecisionType",
    "ReportPeriodType",
]
