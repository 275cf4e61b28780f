"""
Resource optimizer.

Turns predictions and bottlenecks into concrete ``OptimizationAction``s,
tracks their approval, executes them through an ``ActionExecutor`` and
keeps the per-resource configuration (with change history) that executed
actions write to.
"""

import time
from typing import Dict, List, Optional, Tuple

import structlog

from predictive_optimization.core.exceptions import InvalidStateError, StoreError
from predictive_optimization.core.logging import component_scope
from predictive_optimization.core.timeutil import utcnow
from predictive_optimization.prediction.models import (
    BottleneckPrediction,
    PerformancePrediction,
    ResourceType,
)
from predictive_optimization.storage.redis_store import OptimizationStore

from .executors import ActionExecutor, SimulatedExecutor
from .models import (
    ActionTemplate,
    ActualImpact,
    CompressionParameters,
    ComplexityLevel,
    ConfigValue,
    ConfigurationChange,
    ConnectionPoolParameters,
    ExecutionOutcome,
    ExpectedImpact,
    OptimizationAction,
    OptimizationActionType,
    OptimizationCost,
    OptimizationResult,
    OptimizationRisk,
    OptimizationStatus,
    OptimizationStrategy,
    QueryPatternParameters,
    ResourceConfiguration,
    RiskSeverity,
    RiskType,
    ScaleResourcesParameters,
    StrategyCondition,
    TTLPolicyParameters,
)

logger = structlog.get_logger(__name__)

ACTION_KIND = "optimization_action"
RESULT_KIND = "optimization_result"
CONFIG_KIND = "resource_config"
STRATEGY_KIND = "strategy"

CONFIG_HISTORY_LIMIT = 100

DEFAULT_STRATEGIES = [
    OptimizationStrategy(
        id="high-cpu-usage",
        name="High CPU Usage Optimization",
        description="Optimize when CPU usage is consistently high",
        applicable_resources=[ResourceType.CPU],
        conditions=[StrategyCondition(metric="cpu.usage", threshold=0.8, duration=300)],
        actions=[
            ActionTemplate(parameters=ScaleResourcesParameters(scale_factor=1.5)),
            ActionTemplate(parameters=QueryPatternParameters(enable_caching=True)),
        ],
        priority=1,
    ),
    OptimizationStrategy(
        id="redis-memory-pressure",
        name="Redis Memory Pressure Relief",
        description="Optimize Redis memory usage when approaching limits",
        applicable_resources=[ResourceType.REDIS_MEMORY],
        conditions=[StrategyCondition(metric="redis.memory_usage", threshold=0.85, duration=180)],
        actions=[
            ActionTemplate(parameters=TTLPolicyParameters(reduce_ttl=0.8)),
            ActionTemplate(parameters=CompressionParameters(compression_level=6)),
        ],
        priority=2,
    ),
    OptimizationStrategy(
        id="connection-pool-exhaustion",
        name="Connection Pool Optimization",
        description="Optimize connection pool when approaching limits",
        applicable_resources=[ResourceType.CONNECTION_POOL],
        conditions=[StrategyCondition(metric="redis.connected_clients", threshold=800, duration=120)],
        actions=[
            ActionTemplate(parameters=ConnectionPoolParameters(max_connections=1200, idle_timeout=300)),
        ],
        priority=3,
    ),
]

# performance improvement, resource savings, latency reduction, throughput increase, cost reduction
BASE_IMPACT: Dict[OptimizationActionType, Tuple[float, float, float, float, float]] = {
    OptimizationActionType.SCALE_RESOURCES: (0.3, -0.2, 50, 100, -200),
    OptimizationActionType.ADJUST_CACHE_CONFIG: (0.2, 0.1, 20, 50, 50),
    OptimizationActionType.OPTIMIZE_CONNECTION_POOL: (0.15, 0.05, 10, 25, 25),
}

BASE_COST: Dict[OptimizationActionType, OptimizationCost] = {
    OptimizationActionType.SCALE_RESOURCES: OptimizationCost(
        implementation=100, ongoing=200, downtime=300, complexity=ComplexityLevel.MEDIUM
    ),
    OptimizationActionType.ADJUST_CACHE_CONFIG: OptimizationCost(
        implementation=50, ongoing=0, downtime=60, complexity=ComplexityLevel.LOW
    ),
    OptimizationActionType.OPTIMIZE_CONNECTION_POOL: OptimizationCost(
        implementation=75, ongoing=0, downtime=120, complexity=ComplexityLevel.LOW
    ),
}
DEFAULT_COST = OptimizationCost(implementation=50, ongoing=0, downtime=0, complexity=ComplexityLevel.LOW)

RISK_PROFILES: Dict[OptimizationActionType, List[OptimizationRisk]] = {
    OptimizationActionType.SCALE_RESOURCES: [
        OptimizationRisk(
            type=RiskType.SERVICE_INTERRUPTION,
            severity=RiskSeverity.MEDIUM,
            probability=0.3,
            description="Service restart may be required",
            mitigation="Use rolling deployment strategy",
        )
    ],
    OptimizationActionType.ADJUST_CACHE_CONFIG: [
        OptimizationRisk(
            type=RiskType.PERFORMANCE_DEGRADATION,
            severity=RiskSeverity.LOW,
            probability=0.2,
            description="Cache hit rate may temporarily decrease",
            mitigation="Monitor cache performance closely",
        )
    ],
}

PREREQUISITES: Dict[OptimizationActionType, List[str]] = {
    OptimizationActionType.SCALE_RESOURCES: ["admin-access", "resource-quota"],
    OptimizationActionType.ADJUST_CACHE_CONFIG: ["redis-admin-access"],
    OptimizationActionType.OPTIMIZE_CONNECTION_POOL: ["database-admin-access"],
}


def _bottleneck_action(
    resource_type: ResourceType,
    confidence: float,
) -> Optional[OptimizationAction]:
    """Resource-specific action template for a predicted bottleneck."""
    if resource_type is ResourceType.CPU:
        return OptimizationAction(
            type=OptimizationActionType.SCALE_RESOURCES,
            resource_type=resource_type,
            description="Scale up CPU resources to handle predicted load",
            parameters=ScaleResourcesParameters(scale_factor=1.5, target_utilization=0.7),
            expected_impact=ExpectedImpact(
                performance_improvement=0.4, resource_savings=-0.3, latency_reduction=100,
                throughput_increase=200, cost_reduction=-300, confidence=confidence,
            ),
            cost=OptimizationCost(implementation=150, ongoing=300, downtime=300, complexity=ComplexityLevel.MEDIUM),
            risks=[OptimizationRisk(
                type=RiskType.SERVICE_INTERRUPTION, severity=RiskSeverity.MEDIUM, probability=0.3,
                description="Service restart required for CPU scaling", mitigation="Use rolling deployment",
            )],
            prerequisites=["admin-access", "resource-quota"],
        )

    if resource_type is ResourceType.MEMORY:
        return OptimizationAction(
            type=OptimizationActionType.SCALE_RESOURCES,
            resource_type=resource_type,
            description="Scale up memory resources to prevent OOM conditions",
            parameters=ScaleResourcesParameters(scale_factor=1.3, target_utilization=0.75),
            expected_impact=ExpectedImpact(
                performance_improvement=0.35, resource_savings=-0.25, latency_reduction=75,
                throughput_increase=150, cost_reduction=-250, confidence=confidence,
            ),
            cost=OptimizationCost(implementation=100, ongoing=250, downtime=300, complexity=ComplexityLevel.MEDIUM),
            risks=[OptimizationRisk(
                type=RiskType.SERVICE_INTERRUPTION, severity=RiskSeverity.MEDIUM, probability=0.3,
                description="Service restart required for memory scaling", mitigation="Use rolling deployment",
            )],
            prerequisites=["admin-access", "resource-quota"],
        )

    if resource_type is ResourceType.REDIS_MEMORY:
        return OptimizationAction(
            type=OptimizationActionType.ADJUST_TTL_POLICIES,
            resource_type=resource_type,
            description="Optimize Redis TTL policies to reduce memory usage",
            parameters=TTLPolicyParameters(default_ttl=3600, max_ttl=86400, compression_threshold=1024),
            expected_impact=ExpectedImpact(
                performance_improvement=0.25, resource_savings=0.3, latency_reduction=25,
                throughput_increase=75, cost_reduction=100, confidence=confidence,
            ),
            cost=OptimizationCost(implementation=50, ongoing=0, downtime=0, complexity=ComplexityLevel.LOW),
            risks=[OptimizationRisk(
                type=RiskType.DATA_LOSS, severity=RiskSeverity.LOW, probability=0.1,
                description="Some cached data may expire earlier", mitigation="Monitor cache hit rates",
            )],
            prerequisites=["redis-admin-access"],
        )

    if resource_type is ResourceType.NETWORK_BANDWIDTH:
        return OptimizationAction(
            type=OptimizationActionType.ENABLE_COMPRESSION,
            resource_type=resource_type,
            description="Enable compression to reduce network bandwidth usage",
            parameters=CompressionParameters(compression_level=6, min_size=1024),
            expected_impact=ExpectedImpact(
                performance_improvement=0.2, resource_savings=0.4, latency_reduction=50,
                throughput_increase=100, cost_reduction=150, confidence=confidence,
            ),
            cost=OptimizationCost(implementation=25, ongoing=0, downtime=0, complexity=ComplexityLevel.LOW),
            risks=[OptimizationRisk(
                type=RiskType.PERFORMANCE_DEGRADATION, severity=RiskSeverity.LOW, probability=0.15,
                description="CPU usage may increase due to compression",
                mitigation="Monitor CPU usage after enabling",
            )],
            prerequisites=["network-admin-access"],
        )

    if resource_type is ResourceType.CONNECTION_POOL:
        return OptimizationAction(
            type=OptimizationActionType.OPTIMIZE_CONNECTION_POOL,
            resource_type=resource_type,
            description="Optimize connection pool settings to handle more concurrent connections",
            parameters=ConnectionPoolParameters(max_connections=1500, min_connections=50, idle_timeout=300),
            expected_impact=ExpectedImpact(
                performance_improvement=0.3, resource_savings=0.1, latency_reduction=30,
                throughput_increase=200, cost_reduction=50, confidence=confidence,
            ),
            cost=OptimizationCost(implementation=75, ongoing=0, downtime=60, complexity=ComplexityLevel.LOW),
            risks=[OptimizationRisk(
                type=RiskType.RESOURCE_EXHAUSTION, severity=RiskSeverity.MEDIUM, probability=0.2,
                description="Higher connection limits may exhaust system resources",
                mitigation="Monitor system resource usage",
            )],
            prerequisites=["database-admin-access"],
        )

    return None


def infer_resource_type(metric_name: str) -> ResourceType:
    if "cpu" in metric_name:
        return ResourceType.CPU
    if "memory" in metric_name:
        return ResourceType.REDIS_MEMORY if metric_name.startswith("redis") else ResourceType.MEMORY
    if "network" in metric_name:
        return ResourceType.NETWORK_BANDWIDTH
    if "connect" in metric_name:
        return ResourceType.CONNECTION_POOL
    return ResourceType.CPU


def _action_order(action: OptimizationAction) -> Tuple[float, float]:
    return (-action.expected_impact.performance_improvement, action.cost.implementation)


def sort_actions(actions: List[OptimizationAction]) -> List[OptimizationAction]:
    """
    Higher performance improvement first; improvements within 0.1 of each
    other are ordered by implementation cost instead.
    """
    ordered = sorted(actions, key=_action_order)
    # Insertion pass so that near-equal improvements fall back to cost.
    result: List[OptimizationAction] = []
    for action in ordered:
        index = len(result)
        while index > 0:
            previous = result[index - 1]
            diff = previous.expected_impact.performance_improvement - action.expected_impact.performance_improvement
            if abs(diff) > 0.1 or previous.cost.implementation <= action.cost.implementation:
                break
            index -= 1
        result.insert(index, action)
    return result


class ResourceOptimizer:
    """Generates, approves, executes and rolls back resource actions."""

    def __init__(self, store: OptimizationStore, executor: Optional[ActionExecutor] = None):
        self.store = store
        self.executor = executor or SimulatedExecutor()
        self.strategies: Dict[str, OptimizationStrategy] = {}

        logger.info("ResourceOptimizer initialized", executor=type(self.executor).__name__)

    async def start(self) -> None:
        with component_scope("resource_optimizer"):
            await self.load_strategies()
            await self.initialize_default_strategies()

    async def stop(self) -> None:
        for strategy in self.strategies.values():
            await self.store.save(STRATEGY_KIND, strategy.id, strategy)
        logger.info("ResourceOptimizer stopped", strategies=len(self.strategies))

    # Strategies

    async def load_strategies(self) -> int:
        try:
            strategies = await self.store.list(STRATEGY_KIND, OptimizationStrategy)
        except StoreError as e:
            logger.warning("Could not load strategies", error=str(e))
            return 0
        for strategy in strategies:
            self.strategies[strategy.id] = strategy
        logger.info("Optimization strategies loaded", count=len(strategies))
        return len(strategies)

    async def initialize_default_strategies(self) -> int:
        added = 0
        for strategy in DEFAULT_STRATEGIES:
            if strategy.id in self.strategies:
                continue
            await self.add_strategy(strategy.model_copy(deep=True))
            added += 1
        return added

    async def add_strategy(self, strategy: OptimizationStrategy) -> OptimizationStrategy:
        self.strategies[strategy.id] = strategy
        await self.store.save(STRATEGY_KIND, strategy.id, strategy)
        return strategy

    async def set_strategy_enabled(self, strategy_id: str, enabled: bool) -> OptimizationStrategy:
        strategy = self.strategies.get(strategy_id)
        if strategy is None:
            strategy = await self.store.require(STRATEGY_KIND, strategy_id, OptimizationStrategy)
            self.strategies[strategy_id] = strategy
        strategy.enabled = enabled
        await self.store.save(STRATEGY_KIND, strategy.id, strategy)
        logger.info("Strategy updated", strategy_id=strategy_id, enabled=enabled)
        return strategy

    def list_strategies(self) -> List[OptimizationStrategy]:
        return sorted(self.strategies.values(), key=lambda s: s.priority)

    def applicable_strategies(self, prediction: PerformancePrediction) -> List[OptimizationStrategy]:
        """
        Enabled strategies with a condition naming the predicted metric.

        Only the metric is matched; callers decide beforehand whether the
        prediction is worth acting on.
        """
        return [
            strategy
            for strategy in self.list_strategies()
            if strategy.enabled
            and any(condition.metric in prediction.metric_name for condition in strategy.conditions)
        ]

    # Action generation

    @staticmethod
    def expected_impact(action_type: OptimizationActionType, confidence: float) -> ExpectedImpact:
        perf, resources, latency, throughput, cost = BASE_IMPACT.get(
            action_type, BASE_IMPACT[OptimizationActionType.ADJUST_CACHE_CONFIG]
        )
        return ExpectedImpact(
            performance_improvement=perf,
            resource_savings=resources,
            latency_reduction=latency,
            throughput_increase=throughput,
            cost_reduction=cost,
            confidence=max(0.5, confidence * 0.8),
        )

    def action_from_template(
        self,
        template: ActionTemplate,
        strategy: OptimizationStrategy,
        prediction: PerformancePrediction,
    ) -> OptimizationAction:
        action_type = template.type
        return OptimizationAction(
            type=action_type,
            resource_type=infer_resource_type(prediction.metric_name),
            description=f"{strategy.name}: {action_type.value}",
            parameters=template.parameters.model_copy(),
            expected_impact=self.expected_impact(action_type, prediction.confidence),
            cost=BASE_COST.get(action_type, DEFAULT_COST).model_copy(),
            risks=[risk.model_copy() for risk in RISK_PROFILES.get(action_type, [])],
            prerequisites=list(PREREQUISITES.get(action_type, [])),
            strategy_id=strategy.id,
        )

    async def optimize_for_prediction(self, prediction: PerformancePrediction) -> List[OptimizationAction]:
        """Generate and persist PENDING actions from every matching strategy."""
        actions: List[OptimizationAction] = []
        for strategy in self.applicable_strategies(prediction):
            for template in strategy.actions:
                actions.append(self.action_from_template(template, strategy, prediction))

        for action in actions:
            await self.store.save(ACTION_KIND, action.id, action)

        if actions:
            logger.info(
                "Actions generated for prediction",
                metric=prediction.metric_name,
                predicted=prediction.predicted_value,
                count=len(actions),
            )
        return sort_actions(actions)

    async def optimize_for_bottleneck(self, bottleneck: BottleneckPrediction) -> List[OptimizationAction]:
        action = _bottleneck_action(bottleneck.resource_type, bottleneck.confidence)
        if action is None:
            return []

        await self.store.save(ACTION_KIND, action.id, action)
        logger.info(
            "Action generated for bottleneck",
            resource=bottleneck.resource_type.value,
            severity=bottleneck.severity.value,
            action_type=action.type.value,
        )
        return [action]

    # Lifecycle

    async def get_action(self, action_id: str) -> OptimizationAction:
        return await self.store.require(ACTION_KIND, action_id, OptimizationAction)

    async def list_actions(self, status: Optional[OptimizationStatus] = None) -> List[OptimizationAction]:
        try:
            actions = await self.store.list(ACTION_KIND, OptimizationAction)
        except StoreError as e:
            logger.warning("Could not list actions", error=str(e))
            return []
        if status is not None:
            actions = [a for a in actions if a.status is status]
        return sorted(actions, key=lambda a: a.created_at, reverse=True)

    async def approve_action(self, action_id: str) -> OptimizationAction:
        action = await self.get_action(action_id)
        if action.status is not OptimizationStatus.PENDING:
            raise InvalidStateError(ACTION_KIND, action_id, action.status.value, [OptimizationStatus.PENDING.value])

        action.status = OptimizationStatus.APPROVED
        await self.store.save(ACTION_KIND, action.id, action)
        logger.info("Action approved", action_id=action_id, action_type=action.type.value)
        return action

    async def execute(self, action_id: str) -> OptimizationResult:
        """
        Execute an APPROVED action.

        Executor failures (reported or raised) are captured in the result and
        mark the action FAILED with a rollback required; they are not raised.
        """
        action = await self.get_action(action_id)
        if action.status is not OptimizationStatus.APPROVED:
            raise InvalidStateError(ACTION_KIND, action_id, action.status.value, [OptimizationStatus.APPROVED.value])

        action.status = OptimizationStatus.EXECUTING
        action.executed_at = utcnow()
        await self.store.save(ACTION_KIND, action.id, action)

        resource_id = action.resource_type.value
        started = time.perf_counter()
        try:
            outcome = await self.executor.execute_action(action)
        except Exception as e:
            logger.error("Executor raised", action_id=action_id, error=str(e))
            outcome = ExecutionOutcome(success=False, error=str(e))
        elapsed = outcome.execution_time or (time.perf_counter() - started)

        if outcome.success:
            config = await self.get_configuration(resource_id)
            previous = dict(config.current_config) if config else {}
            await self.update_configuration(
                resource_id,
                action.parameters.settings(),
                reason=action.description,
                action_id=action.id,
            )
            expected = action.expected_impact
            v = outcome.variance
            result = OptimizationResult(
                action_id=action.id,
                resource_id=resource_id,
                success=True,
                actual_impact=ActualImpact(
                    performance_change=expected.performance_improvement * v,
                    resource_change=expected.resource_savings * v,
                    latency_change=-expected.latency_reduction * v,
                    throughput_change=expected.throughput_increase * v,
                    cost_change=expected.cost_reduction * v,
                ),
                execution_time=elapsed,
                previous_config=previous,
            )
            action.status = OptimizationStatus.COMPLETED
            logger.info("Action completed", action_id=action_id, variance=v)
        else:
            result = OptimizationResult(
                action_id=action.id,
                resource_id=resource_id,
                success=False,
                execution_time=elapsed,
                errors=[outcome.error or "unknown error"],
                rollback_required=True,
                rollback_reason="Execution failed",
            )
            action.status = OptimizationStatus.FAILED
            logger.error("Action failed", action_id=action_id, error=outcome.error)

        action.result = result
        await self.store.save(RESULT_KIND, action.id, result)
        await self.store.save(ACTION_KIND, action.id, action)
        return result

    async def rollback(self, action_id: str) -> OptimizationAction:
        action = await self.get_action(action_id)
        if action.status is OptimizationStatus.ROLLED_BACK:
            return action

        result = action.result or await self.store.load(RESULT_KIND, action_id, OptimizationResult)
        if result is None:
            raise InvalidStateError(
                ACTION_KIND,
                action_id,
                action.status.value,
                [OptimizationStatus.COMPLETED.value, OptimizationStatus.FAILED.value],
            )

        await self.executor.rollback_action(action)
        if result.success:
            await self._restore_configuration(result, action)

        result.rolled_back = True
        action.result = result
        action.status = OptimizationStatus.ROLLED_BACK
        await self.store.save(RESULT_KIND, action.id, result)
        await self.store.save(ACTION_KIND, action.id, action)

        logger.info("Action rolled back", action_id=action_id, resource=result.resource_id)
        return action

    async def _restore_configuration(self, result: OptimizationResult, action: OptimizationAction) -> None:
        config = await self.get_configuration(result.resource_id)
        if config is None:
            return

        reason = f"Rollback of {action.description}"
        for key in set(config.current_config) | set(result.previous_config):
            old = config.current_config.get(key)
            new = result.previous_config.get(key)
            if old != new:
                config.history.append(ConfigurationChange(
                    parameter=key, old_value=old, new_value=new, reason=reason, action_id=action.id,
                ))
        config.current_config = dict(result.previous_config)
        config.history = config.history[-CONFIG_HISTORY_LIMIT:]
        config.updated_at = utcnow()
        await self.store.save(CONFIG_KIND, config.resource_id, config)

    # Configuration

    async def get_configuration(self, resource_id: str) -> Optional[ResourceConfiguration]:
        return await self.store.load(CONFIG_KIND, resource_id, ResourceConfiguration)

    async def update_configuration(
        self,
        resource_id: str,
        changes: Dict[str, ConfigValue],
        reason: str = "Manual configuration update",
        action_id: Optional[str] = None,
    ) -> ResourceConfiguration:
        config = await self.get_configuration(resource_id)
        if config is None:
            config = ResourceConfiguration(
                resource_id=resource_id,
                resource_type=infer_resource_type(resource_id),
            )

        for key, value in changes.items():
            old = config.current_config.get(key)
            if old == value:
                continue
            config.history.append(ConfigurationChange(
                parameter=key, old_value=old, new_value=value, reason=reason, action_id=action_id,
            ))
            config.current_config[key] = value

        config.history = config.history[-CONFIG_HISTORY_LIMIT:]
        config.updated_at = utcnow()
        await self.store.save(CONFIG_KIND, resource_id, config)
        logger.debug("Configuration updated", resource_id=resource_id, changes=len(changes))
        return config

    async def get_optimization_history(self, resource_id: Optional[str] = None) -> List[OptimizationResult]:
        try:
            results = await self.store.list(RESULT_KIND, OptimizationResult)
        except StoreError as e:
            logger.warning("Could not list optimization results", error=str(e))
            return []
        if resource_id is not None:
            results = [r for r in results if r.resource_id == resource_id]
        return sorted(results, key=lambda r: r.completed_at, reverse=True)


__all__ = ["ResourceOptimizer", "DEFAULT_STRATEGIES", "infer_resource_type", "sort_actions"]
