"""
Cost optimizer.

Scans resource utilization and monthly cost for waste, forecasts cost
trajectories from daily cost history and raises budget alerts. Usage and
cost figures come from a ``CostDataSource``; implementation work is handed
to a ``CostExecutor``.
"""

import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Dict, List, Optional

import structlog

from predictive_optimization.core.exceptions import InvalidStateError, StoreError
from predictive_optimization.core.logging import component_scope
from predictive_optimization.core.scheduling import PeriodicTask
from predictive_optimization.core.timeutil import utcnow
from predictive_optimization.monitoring.statistics import linear_slope
from predictive_optimization.storage.redis_store import OptimizationStore

from .cost_models import (
    CostAlert,
    CostAlertSeverity,
    CostAlertType,
    CostBreakdown,
    CostDataPoint,
    CostForecast,
    CostOptimization,
    CostOptimizationResult,
    CostOptimizationStatus,
    CostOptimizationType,
    CostPerformanceImpact,
    CostPeriod,
    CostProjection,
    CostResourceType,
    CostRisk,
    CostRiskType,
    CostSavings,
    CostScenario,
    CostThreshold,
    CostTrend,
    CostTrendDirection,
    EffortLevel,
    ImplementationPhase,
    ImplementationPlan,
    OptimizationOpportunity,
    RequiredResource,
    ResourceRequirementType,
    ResourceUsage,
    RiskImpact,
    RollbackPlan,
    RollbackStep,
    TrendFactor,
)
from .executors import CostExecutor, SimulatedExecutor
from .models import ExecutionOutcome, RiskSeverity

logger = structlog.get_logger(__name__)

OPTIMIZATION_KIND = "cost_optimization"
FORECAST_KIND = "cost_forecast"
ALERT_KIND = "cost_alert"

ANALYZED_TTL = 7 * 24 * 3600
FORECAST_TTL = 30 * 24 * 3600
HISTORY_DAYS = 90
FORECAST_DAYS = 30
STABLE_RATE = 0.05
PROJECTED_GROWTH = 1.1

APPROVABLE = (CostOptimizationStatus.IDENTIFIED, CostOptimizationStatus.ANALYZED)

DEFAULT_USAGE: Dict[CostResourceType, ResourceUsage] = {
    CostResourceType.CPU: ResourceUsage(utilization=0.65, unit="cores"),
    CostResourceType.MEMORY: ResourceUsage(utilization=0.72, allocated=32, used=23, unit="GB"),
    CostResourceType.REDIS_MEMORY: ResourceUsage(utilization=0.68, allocated=16, used=11, unit="GB"),
    CostResourceType.NETWORK_BANDWIDTH: ResourceUsage(utilization=0.45, allocated=1000, used=450, unit="Mbps"),
    CostResourceType.DISK_STORAGE: ResourceUsage(utilization=0.35, allocated=1000, used=350, unit="IOPS"),
    CostResourceType.CONNECTION_POOL: ResourceUsage(utilization=0.55, allocated=1000, used=550, unit="connections"),
    CostResourceType.QUEUE_CAPACITY: ResourceUsage(utilization=0.25, allocated=10000, used=2500, unit="messages"),
}

DEFAULT_COSTS: Dict[CostResourceType, CostBreakdown] = {
    CostResourceType.CPU: CostBreakdown(compute=800, total=800),
    CostResourceType.MEMORY: CostBreakdown(memory=400, total=400),
    CostResourceType.REDIS_MEMORY: CostBreakdown(memory=300, storage=100, total=400),
    CostResourceType.NETWORK_BANDWIDTH: CostBreakdown(network=200, total=200),
    CostResourceType.DISK_STORAGE: CostBreakdown(storage=150, total=150),
    CostResourceType.CONNECTION_POOL: CostBreakdown(compute=100, total=100),
    CostResourceType.QUEUE_CAPACITY: CostBreakdown(compute=50, total=50),
}

ALERT_RECOMMENDATIONS: Dict[CostAlertType, List[str]] = {
    CostAlertType.BUDGET_EXCEEDED: [
        "Review resource utilization",
        "Consider right-sizing resources",
        "Implement auto-scaling",
    ],
    CostAlertType.COST_SPIKE: [
        "Investigate unusual usage patterns",
        "Check for resource leaks",
        "Review recent deployments",
    ],
    CostAlertType.INEFFICIENT_RESOURCE_USAGE: [
        "Optimize resource allocation",
        "Enable compression",
        "Review caching strategies",
    ],
}
DEFAULT_ALERT_RECOMMENDATIONS = ["Review cost optimization opportunities"]

TIMEFRAMES = {
    CostPeriod.HOURLY: "Next hour",
    CostPeriod.DAILY: "Next 24 hours",
    CostPeriod.MONTHLY: "This month",
    CostPeriod.YEARLY: "This year",
}


class CostDataSource(ABC):
    """Where current utilization, monthly costs and cost history come from."""

    @abstractmethod
    async def current_usage(self) -> Dict[CostResourceType, ResourceUsage]:
        """Current utilization per resource type."""

    @abstractmethod
    async def current_costs(self) -> Dict[CostResourceType, CostBreakdown]:
        """Current monthly cost breakdown per resource type."""

    @abstractmethod
    async def cost_history(self, resource_type: CostResourceType, days: int) -> List[CostDataPoint]:
        """Daily cost points, oldest first."""


class StaticCostSource(CostDataSource):
    """Fixed usage and cost figures; history is flat at the current daily cost."""

    def __init__(
        self,
        usage: Optional[Dict[CostResourceType, ResourceUsage]] = None,
        costs: Optional[Dict[CostResourceType, CostBreakdown]] = None,
    ):
        self.usage = dict(usage if usage is not None else DEFAULT_USAGE)
        self.costs = dict(costs if costs is not None else DEFAULT_COSTS)

    async def current_usage(self) -> Dict[CostResourceType, ResourceUsage]:
        return dict(self.usage)

    async def current_costs(self) -> Dict[CostResourceType, CostBreakdown]:
        return dict(self.costs)

    async def cost_history(self, resource_type: CostResourceType, days: int) -> List[CostDataPoint]:
        breakdown = self.costs.get(resource_type)
        if breakdown is None:
            return []
        daily = breakdown.total / 30
        start = utcnow() - timedelta(days=days)
        return [CostDataPoint(date=start + timedelta(days=i), cost=daily) for i in range(days)]


def scaled_breakdown(current: CostBreakdown, factor: float) -> CostBreakdown:
    return current.model_copy(update={
        "compute": current.compute * factor,
        "memory": current.memory * factor,
        "storage": current.storage * factor,
        "network": current.network * factor,
        "licensing": current.licensing * factor,
        "support": current.support * factor,
        "total": current.total * factor,
    })


def alert_severity(current_value: float, threshold: float) -> CostAlertSeverity:
    """Severity by how far the current value exceeds its threshold."""
    ratio = current_value / threshold if threshold else float("inf")
    if ratio > 1.5:
        return CostAlertSeverity.CRITICAL
    if ratio > 1.2:
        return CostAlertSeverity.WARNING
    return CostAlertSeverity.INFO


def _rollback_plan() -> RollbackPlan:
    return RollbackPlan(
        steps=[
            RollbackStep(
                id="revert_config",
                description="Revert to previous configuration",
                estimated_time=30,
                prerequisites=["backup_configuration"],
            )
        ],
        estimated_time=1,
        data_backup_required=True,
        risk_level=RiskSeverity.LOW,
    )


def implementation_plan(optimization_type: CostOptimizationType) -> ImplementationPlan:
    if optimization_type is CostOptimizationType.AUTO_SCALING:
        phases = [
            ImplementationPhase(
                id="design", name="Auto-scaling Design", description="Design auto-scaling policies",
                duration=3, cost=800, risks=["incorrect_scaling_policies"],
                deliverables=["scaling_policy"], prerequisites=["usage_analysis"],
            ),
            ImplementationPhase(
                id="implementation", name="Auto-scaling Implementation",
                description="Implement and test auto-scaling",
                duration=5, cost=1200, risks=["scaling_failures"],
                deliverables=["auto_scaling_configuration"], prerequisites=["admin_access"],
            ),
        ]
        total_duration = 8
        resources = [RequiredResource(type=ResourceRequirementType.ENGINEER_TIME, quantity=40, duration=8, cost=4000)]
    else:
        phases = [
            ImplementationPhase(
                id="analysis", name="Resource Analysis", description="Analyze current resource usage patterns",
                duration=2, cost=500, risks=["incomplete_analysis"],
                deliverables=["usage_report"], prerequisites=["monitoring_access"],
            ),
            ImplementationPhase(
                id="implementation", name="Resource Adjustment", description="Adjust resource allocations",
                duration=1, cost=200, risks=["service_interruption"],
                deliverables=["updated_configuration"], prerequisites=["admin_access"],
            ),
        ]
        total_duration = 3
        resources = [RequiredResource(type=ResourceRequirementType.ENGINEER_TIME, quantity=16, duration=3, cost=1600)]

    return ImplementationPlan(
        phases=phases,
        total_duration=total_duration,
        required_resources=resources,
        dependencies=["monitoring_system", "admin_access"],
        rollback_plan=_rollback_plan(),
    )


def risk_assessment(optimization_type: CostOptimizationType) -> List[CostRisk]:
    if optimization_type is CostOptimizationType.RIGHT_SIZING:
        return [CostRisk(
            type=CostRiskType.PERFORMANCE_DEGRADATION,
            severity=RiskSeverity.MEDIUM,
            probability=0.3,
            description="Resource reduction may impact performance during peak loads",
            impact=RiskImpact(financial=1000, operational="Potential performance degradation",
                              reputation="Minor user experience impact"),
            mitigation="Monitor performance closely and have rollback plan ready",
        )]
    if optimization_type is CostOptimizationType.AUTO_SCALING:
        return [CostRisk(
            type=CostRiskType.SERVICE_INTERRUPTION,
            severity=RiskSeverity.LOW,
            probability=0.2,
            description="Auto-scaling configuration errors may cause service issues",
            impact=RiskImpact(financial=500, operational="Temporary service disruption",
                              reputation="Minimal impact"),
            mitigation="Thorough testing in staging environment",
        )]
    return []


class CostOptimizer:
    """Finds cost savings, tracks their implementation and watches budgets."""

    def __init__(
        self,
        store: OptimizationStore,
        executor: Optional[CostExecutor] = None,
        source: Optional[CostDataSource] = None,
        interval: float = 21600,
        monthly_budget: float = 1000.0,
    ):
        self.store = store
        self.executor = executor or SimulatedExecutor()
        self.source = source or StaticCostSource()
        self.monthly_budget = monthly_budget

        self._task = PeriodicTask("cost-analysis", interval, self.run_analysis)

        logger.info("CostOptimizer initialized", interval=interval, monthly_budget=monthly_budget)

    async def start(self) -> None:
        with component_scope("cost_optimizer"):
            self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    # Identification

    def _build(
        self,
        optimization_type: CostOptimizationType,
        resource_type: CostResourceType,
        description: str,
        current: CostBreakdown,
        percentage: float,
        payback_period: float,
        roi: float,
        npv_offset: float,
    ) -> CostOptimization:
        amount = current.total * percentage
        return CostOptimization(
            type=optimization_type,
            resource_type=resource_type,
            description=description,
            current_cost=current,
            optimized_cost=scaled_breakdown(current, 1 - percentage),
            savings=CostSavings(
                amount=amount,
                percentage=percentage,
                payback_period=payback_period,
                roi=roi,
                net_present_value=amount * 12 - npv_offset,
            ),
            implementation=implementation_plan(optimization_type),
            risks=risk_assessment(optimization_type),
        )

    def optimizations_for(
        self,
        resource_type: CostResourceType,
        usage: ResourceUsage,
        cost: CostBreakdown,
    ) -> List[CostOptimization]:
        """Apply the opportunity rules to one resource."""
        u = usage.utilization
        found: List[CostOptimization] = []

        if u < 0.5:
            pct = min(0.4, (0.5 - u) * 2)
            found.append(self._build(
                CostOptimizationType.RIGHT_SIZING, resource_type,
                f"Right-size {resource_type.value} resources based on current utilization ({u * 100:.1f}%)",
                cost, pct, payback_period=1, roi=pct * 100, npv_offset=0,
            ))

        if u > 0.8 or u < 0.3:
            found.append(self._build(
                CostOptimizationType.AUTO_SCALING, resource_type,
                f"Implement auto-scaling for {resource_type.value} to optimize resource allocation",
                cost, 0.25, payback_period=2, roi=15, npv_offset=1000,
            ))

        if resource_type is CostResourceType.REDIS_MEMORY and u < 0.7:
            found.append(self._build(
                CostOptimizationType.COMPRESSION, resource_type,
                "Enable data compression to reduce Redis memory usage",
                cost, 0.3, payback_period=0.5, roi=30, npv_offset=200,
            ))

        if resource_type is CostResourceType.NETWORK_BANDWIDTH and u > 0.6:
            found.append(self._build(
                CostOptimizationType.NETWORK_OPTIMIZATION, resource_type,
                "Optimize network usage through caching and compression",
                cost, 0.2, payback_period=1.5, roi=15, npv_offset=500,
            ))

        return found

    async def identify_optimizations(
        self,
        resource_type: Optional[CostResourceType] = None,
    ) -> List[CostOptimization]:
        usage = await self.source.current_usage()
        costs = await self.source.current_costs()

        resource_types = [resource_type] if resource_type else list(usage)
        optimizations: List[CostOptimization] = []
        for rt in resource_types:
            if rt not in usage or rt not in costs:
                continue
            optimizations.extend(self.optimizations_for(rt, usage[rt], costs[rt]))

        for optimization in optimizations:
            await self.store.save(OPTIMIZATION_KIND, optimization.id, optimization, ttl=ANALYZED_TTL)

        optimizations.sort(key=lambda o: o.savings.amount, reverse=True)
        logger.info(
            "Cost optimizations identified",
            count=len(optimizations),
            total_savings=sum(o.savings.amount for o in optimizations),
        )
        return optimizations

    # Lifecycle

    async def get_optimization(self, optimization_id: str) -> CostOptimization:
        return await self.store.require(OPTIMIZATION_KIND, optimization_id, CostOptimization)

    async def list_optimizations(
        self,
        status: Optional[CostOptimizationStatus] = None,
    ) -> List[CostOptimization]:
        try:
            optimizations = await self.store.list(OPTIMIZATION_KIND, CostOptimization)
        except StoreError as e:
            logger.warning("Could not list cost optimizations", error=str(e))
            return []
        if status is not None:
            optimizations = [o for o in optimizations if o.status is status]
        return sorted(optimizations, key=lambda o: o.created_at, reverse=True)

    async def approve(self, optimization_id: str) -> CostOptimization:
        optimization = await self.get_optimization(optimization_id)
        if optimization.status not in APPROVABLE:
            raise InvalidStateError(
                OPTIMIZATION_KIND, optimization_id, optimization.status.value, [s.value for s in APPROVABLE]
            )

        optimization.status = CostOptimizationStatus.APPROVED
        await self.store.save(OPTIMIZATION_KIND, optimization.id, optimization)
        await self.store.persist(OPTIMIZATION_KIND, optimization.id)
        logger.info("Cost optimization approved", optimization_id=optimization_id)
        return optimization

    async def cancel(self, optimization_id: str) -> CostOptimization:
        optimization = await self.get_optimization(optimization_id)
        allowed = APPROVABLE + (CostOptimizationStatus.APPROVED,)
        if optimization.status not in allowed:
            raise InvalidStateError(
                OPTIMIZATION_KIND, optimization_id, optimization.status.value, [s.value for s in allowed]
            )

        optimization.status = CostOptimizationStatus.CANCELLED
        await self.store.save(OPTIMIZATION_KIND, optimization.id, optimization)
        return optimization

    async def implement(self, optimization_id: str) -> CostOptimizationResult:
        """
        Implement an APPROVED optimization through the executor.

        A failed implementation is recorded on the optimization (FAILED) and
        returned rather than raised.
        """
        optimization = await self.get_optimization(optimization_id)
        if optimization.status is not CostOptimizationStatus.APPROVED:
            raise InvalidStateError(
                OPTIMIZATION_KIND,
                optimization_id,
                optimization.status.value,
                [CostOptimizationStatus.APPROVED.value],
            )

        logger.info("Implementing cost optimization", optimization_id=optimization_id,
                    description=optimization.description)
        optimization.status = CostOptimizationStatus.IN_PROGRESS
        optimization.implemented_at = utcnow()
        await self.store.save(OPTIMIZATION_KIND, optimization.id, optimization)

        started = time.perf_counter()
        try:
            outcome = await self.executor.implement(optimization)
        except Exception as e:
            logger.error("Cost executor raised", optimization_id=optimization_id, error=str(e))
            outcome = ExecutionOutcome(success=False, error=str(e))
        elapsed = outcome.execution_time or (time.perf_counter() - started)

        implementation_cost = optimization.implementation.total_cost
        if outcome.success:
            savings = optimization.savings
            result = CostOptimizationResult(
                optimization_id=optimization.id,
                success=True,
                actual_savings=savings.model_copy(update={
                    "amount": savings.amount * outcome.variance,
                    "percentage": savings.percentage * outcome.variance,
                }),
                performance_impact=CostPerformanceImpact(),
                implementation_cost=implementation_cost,
                execution_time=elapsed,
                lessons_learned=["Monitoring is crucial during optimization", "Gradual rollout reduces risk"],
                recommendations=["Continue monitoring performance", "Consider additional optimizations"],
            )
            optimization.status = CostOptimizationStatus.COMPLETED
        else:
            result = CostOptimizationResult(
                optimization_id=optimization.id,
                success=False,
                actual_savings=CostSavings(amount=0, percentage=0, payback_period=0, roi=0, net_present_value=0),
                implementation_cost=implementation_cost,
                execution_time=elapsed,
                errors=[outcome.error or "Optimization implementation failed"],
                rollback_required=True,
                lessons_learned=["Implementation failed"],
                recommendations=["Review implementation plan"],
            )
            optimization.status = CostOptimizationStatus.FAILED
            logger.error("Cost optimization failed", optimization_id=optimization_id, error=outcome.error)

        optimization.result = result
        await self.store.save(OPTIMIZATION_KIND, optimization.id, optimization)
        return result

    # Forecasting

    @staticmethod
    def analyze_trend(history: List[CostDataPoint]) -> CostTrend:
        if len(history) < 2:
            return CostTrend()

        costs = [point.cost for point in history]
        average = sum(costs) / len(costs)
        slope = linear_slope(costs)
        monthly_rate = slope * 30 / average if average else 0.0

        if abs(monthly_rate) < STABLE_RATE:
            direction = CostTrendDirection.STABLE
        elif monthly_rate > 0:
            direction = CostTrendDirection.INCREASING
        else:
            direction = CostTrendDirection.DECREASING

        return CostTrend(
            direction=direction,
            rate=abs(monthly_rate) * 100,
            factors=[TrendFactor(
                name="usage_growth",
                impact=0.6 if monthly_rate > 0 else -0.6,
                confidence=0.8,
                description="Resource usage trend",
            )],
        )

    @staticmethod
    def project(history: List[CostDataPoint], trend: CostTrend, horizon_days: int) -> CostProjection:
        last_cost = history[-1].cost if history else 100.0
        daily_rate = trend.rate / 100 / 30
        now = utcnow()

        timeline: List[CostDataPoint] = []
        for i in range(horizon_days + 1):
            cost = last_cost
            if trend.direction is CostTrendDirection.INCREASING:
                cost = last_cost * (1 + daily_rate) ** i
            elif trend.direction is CostTrendDirection.DECREASING:
                cost = last_cost * (1 - daily_rate) ** i
            timeline.append(CostDataPoint(
                date=now + timedelta(days=i),
                cost=cost,
                confidence=max(0.5, 0.9 - (i / horizon_days) * 0.4) if horizon_days else 0.9,
            ))

        def scenario(name: str, description: str, probability: float, impact: float) -> CostScenario:
            return CostScenario(
                name=name,
                description=description,
                probability=probability,
                cost_impact=impact,
                timeline=[p.model_copy(update={"cost": p.cost * (1 + impact)}) for p in timeline],
            )

        return CostProjection(
            timeline=timeline,
            scenarios=[
                scenario("Conservative", "Lower growth scenario", 0.3, -0.2),
                scenario("Aggressive", "Higher growth scenario", 0.2, 0.3),
            ],
            assumptions=[
                "Current usage patterns continue",
                "No major architectural changes",
                "Pricing remains stable",
            ],
        )

    @staticmethod
    def forecast_confidence(history: List[CostDataPoint], trend: CostTrend) -> float:
        n = len(history)
        data_quality = 0.9 if n >= 30 else n / 30 * 0.9
        stability = 0.9 if trend.direction is CostTrendDirection.STABLE else 0.7
        return min(1.0, data_quality * stability)

    async def forecast(self, resource_type: CostResourceType, horizon_days: int = FORECAST_DAYS) -> CostForecast:
        history = await self.source.cost_history(resource_type, HISTORY_DAYS)
        trend = self.analyze_trend(history)
        projection = self.project(history, trend, horizon_days)

        final_cost = projection.timeline[-1].cost
        forecast = CostForecast(
            resource_type=resource_type,
            time_horizon=horizon_days,
            current_trend=trend,
            projected_cost=projection,
            optimization_opportunities=[
                OptimizationOpportunity(
                    type=CostOptimizationType.RIGHT_SIZING, potential_savings=final_cost * 0.2,
                    confidence=0.8, effort=EffortLevel.LOW, timeframe="1-2 weeks",
                ),
                OptimizationOpportunity(
                    type=CostOptimizationType.AUTO_SCALING, potential_savings=final_cost * 0.25,
                    confidence=0.7, effort=EffortLevel.MEDIUM, timeframe="1-2 months",
                ),
            ],
            confidence=self.forecast_confidence(history, trend),
            sample_count=len(history),
        )

        await self.store.save(FORECAST_KIND, forecast.id, forecast, ttl=FORECAST_TTL)
        logger.debug(
            "Cost forecast generated",
            resource=resource_type.value,
            direction=trend.direction.value,
            confidence=forecast.confidence,
        )
        return forecast

    # Alerts

    async def create_alert(
        self,
        resource_type: CostResourceType,
        alert_type: CostAlertType,
        threshold: CostThreshold,
        current_value: float,
        projected_value: Optional[float] = None,
        message: Optional[str] = None,
    ) -> CostAlert:
        severity = alert_severity(current_value, threshold.value)
        alert = CostAlert(
            type=alert_type,
            resource_type=resource_type,
            severity=severity,
            threshold=threshold,
            current_value=current_value,
            projected_value=current_value if projected_value is None else projected_value,
            message=message or (
                f"{alert_type.value.replace('_', ' ').capitalize()} for {resource_type.value}: "
                f"{current_value:.2f} against {threshold.value:.2f}"
            ),
            timeframe=TIMEFRAMES[threshold.period],
            recommendations=list(ALERT_RECOMMENDATIONS.get(alert_type, DEFAULT_ALERT_RECOMMENDATIONS)),
        )

        await self.store.save(ALERT_KIND, alert.id, alert)
        logger.warning(
            "Cost alert raised",
            alert_type=alert_type.value,
            resource=resource_type.value,
            severity=severity.value,
            current=current_value,
            threshold=threshold.value,
        )
        return alert

    async def acknowledge_alert(self, alert_id: str) -> CostAlert:
        alert = await self.store.require(ALERT_KIND, alert_id, CostAlert)
        if alert.acknowledged:
            return alert

        alert.acknowledged = True
        alert.acknowledged_at = utcnow()
        await self.store.save(ALERT_KIND, alert.id, alert)
        return alert

    async def list_active_alerts(self) -> List[CostAlert]:
        try:
            alerts = await self.store.list(ALERT_KIND, CostAlert)
        except StoreError as e:
            logger.warning("Could not list cost alerts", error=str(e))
            return []
        return sorted((a for a in alerts if not a.acknowledged), key=lambda a: a.created_at, reverse=True)

    async def check_cost_alerts(self) -> List[CostAlert]:
        costs = await self.source.current_costs()
        threshold = CostThreshold(value=self.monthly_budget, period=CostPeriod.MONTHLY)

        alerts: List[CostAlert] = []
        for resource_type, cost in costs.items():
            projected = cost.total * PROJECTED_GROWTH
            if cost.total > self.monthly_budget:
                alerts.append(await self.create_alert(
                    resource_type, CostAlertType.BUDGET_EXCEEDED, threshold, cost.total, projected,
                ))
            elif projected > self.monthly_budget:
                alerts.append(await self.create_alert(
                    resource_type, CostAlertType.BUDGET_FORECAST_EXCEEDED, threshold, cost.total, projected,
                ))
        return alerts

    async def run_analysis(self) -> None:
        await self.identify_optimizations()
        for resource_type in CostResourceType:
            await self.forecast(resource_type, FORECAST_DAYS)
        await self.check_cost_alerts()


__all__ = [
    "CostOptimizer",
    "CostDataSource",
    "StaticCostSource",
    "alert_severity",
    "implementation_plan",
]
