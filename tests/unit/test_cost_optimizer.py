"""
Unit tests for the cost optimizer.
"""

from datetime import timedelta
from typing import Dict, List

import pytest

from predictive_optimization.core.exceptions import InvalidStateError, RecordNotFoundError
from predictive_optimization.core.timeutil import utcnow
from predictive_optimization.optimization import CostDataSource, CostOptimizer, StaticCostSource
from predictive_optimization.optimization.cost_models import (
    CostAlertSeverity,
    CostAlertType,
    CostBreakdown,
    CostDataPoint,
    CostForecast,
    CostOptimizationStatus,
    CostOptimizationType,
    CostPeriod,
    CostResourceType,
    CostThreshold,
    CostTrendDirection,
    ResourceUsage,
)
from predictive_optimization.optimization.cost_optimizer import (
    FORECAST_KIND,
    OPTIMIZATION_KIND,
    alert_severity,
    implementation_plan,
)


class RisingCostSource(CostDataSource):
    """CPU cost growing by a fixed amount per day."""

    def __init__(self, start: float = 20.0, step: float = 0.5):
        self.start = start
        self.step = step

    async def current_usage(self) -> Dict[CostResourceType, ResourceUsage]:
        return {CostResourceType.CPU: ResourceUsage(utilization=0.6)}

    async def current_costs(self) -> Dict[CostResourceType, CostBreakdown]:
        return {CostResourceType.CPU: CostBreakdown(compute=900, total=900)}

    async def cost_history(self, resource_type: CostResourceType, days: int) -> List[CostDataPoint]:
        begin = utcnow() - timedelta(days=days)
        return [
            CostDataPoint(date=begin + timedelta(days=i), cost=self.start + self.step * i)
            for i in range(days)
        ]


def single_resource_source(resource_type, utilization, total):
    return StaticCostSource(
        usage={resource_type: ResourceUsage(utilization=utilization)},
        costs={resource_type: CostBreakdown(compute=total, total=total)},
    )


class TestOpportunityRules:
    """Test the per-resource savings rules."""

    def test_right_sizing_for_low_utilization(self, cost_optimizer):
        found = cost_optimizer.optimizations_for(
            CostResourceType.CPU,
            ResourceUsage(utilization=0.3),
            CostBreakdown(compute=800, total=800),
        )

        assert [o.type for o in found] == [CostOptimizationType.RIGHT_SIZING]
        right_sizing = found[0]
        assert right_sizing.savings.amount == pytest.approx(320)
        assert right_sizing.savings.percentage == pytest.approx(0.4)
        assert right_sizing.optimized_cost.total == pytest.approx(480)
        assert right_sizing.optimized_cost.compute == pytest.approx(480)
        assert "30.0%" in right_sizing.description

    def test_right_sizing_capped_at_forty_percent(self, cost_optimizer):
        found = cost_optimizer.optimizations_for(
            CostResourceType.CPU,
            ResourceUsage(utilization=0.05),
            CostBreakdown(total=1000),
        )

        right_sizing = next(o for o in found if o.type is CostOptimizationType.RIGHT_SIZING)
        assert right_sizing.savings.percentage == 0.4

    def test_auto_scaling_for_extremes(self, cost_optimizer):
        high = cost_optimizer.optimizations_for(
            CostResourceType.CPU, ResourceUsage(utilization=0.9), CostBreakdown(total=1000)
        )
        low = cost_optimizer.optimizations_for(
            CostResourceType.CPU, ResourceUsage(utilization=0.1), CostBreakdown(total=1000)
        )

        assert [o.type for o in high] == [CostOptimizationType.AUTO_SCALING]
        assert high[0].savings.amount == pytest.approx(250)
        assert high[0].savings.net_present_value == pytest.approx(250 * 12 - 1000)
        assert {o.type for o in low} == {CostOptimizationType.RIGHT_SIZING, CostOptimizationType.AUTO_SCALING}

    def test_compression_for_redis(self, cost_optimizer):
        found = cost_optimizer.optimizations_for(
            CostResourceType.REDIS_MEMORY, ResourceUsage(utilization=0.68), CostBreakdown(total=400)
        )

        assert [o.type for o in found] == [CostOptimizationType.COMPRESSION]
        assert found[0].savings.amount == pytest.approx(120)
        assert found[0].risks == []

    def test_network_optimization(self, cost_optimizer):
        found = cost_optimizer.optimizations_for(
            CostResourceType.NETWORK_BANDWIDTH, ResourceUsage(utilization=0.7), CostBreakdown(total=200)
        )

        assert [o.type for o in found] == [CostOptimizationType.NETWORK_OPTIMIZATION]

    def test_nothing_for_balanced_usage(self, cost_optimizer):
        assert cost_optimizer.optimizations_for(
            CostResourceType.MEMORY, ResourceUsage(utilization=0.6), CostBreakdown(total=400)
        ) == []

    def test_only_right_sizing_and_auto_scaling_carry_risks(self, cost_optimizer):
        found = cost_optimizer.optimizations_for(
            CostResourceType.CPU, ResourceUsage(utilization=0.1), CostBreakdown(total=1000)
        )

        assert all(len(o.risks) == 1 for o in found)

    def test_implementation_plans(self):
        assert implementation_plan(CostOptimizationType.RIGHT_SIZING).total_cost == 700
        assert implementation_plan(CostOptimizationType.AUTO_SCALING).total_cost == 2000
        assert implementation_plan(CostOptimizationType.AUTO_SCALING).total_duration == 8


class TestIdentification:
    """Test scanning a cost source."""

    @pytest.mark.asyncio
    async def test_identify_from_default_source(self, cost_optimizer, store):
        found = await cost_optimizer.identify_optimizations()

        amounts = [o.savings.amount for o in found]
        assert amounts == sorted(amounts, reverse=True)
        assert all(o.status is CostOptimizationStatus.ANALYZED for o in found)

        stored = await cost_optimizer.list_optimizations()
        assert len(stored) == len(found)
        assert 0 < await store.ttl(OPTIMIZATION_KIND, found[0].id) <= 7 * 24 * 3600

    @pytest.mark.asyncio
    async def test_identify_single_resource(self, cost_optimizer):
        found = await cost_optimizer.identify_optimizations(CostResourceType.QUEUE_CAPACITY)

        assert found
        assert all(o.resource_type is CostResourceType.QUEUE_CAPACITY for o in found)

    @pytest.mark.asyncio
    async def test_resource_without_cost_skipped(self, store, executor):
        source = StaticCostSource(
            usage={CostResourceType.CPU: ResourceUsage(utilization=0.1)},
            costs={},
        )
        optimizer = CostOptimizer(store, executor=executor, source=source)

        assert await optimizer.identify_optimizations() == []


class TestOptimizationLifecycle:
    """Test approving, cancelling and implementing optimizations."""

    @pytest.fixture
    async def right_sizing(self, store, executor):
        optimizer = CostOptimizer(
            store, executor=executor, source=single_resource_source(CostResourceType.CPU, 0.3, 800)
        )
        found = await optimizer.identify_optimizations()
        return optimizer, found[0]

    @pytest.mark.asyncio
    async def test_approve_persists(self, right_sizing, store):
        optimizer, optimization = right_sizing

        approved = await optimizer.approve(optimization.id)

        assert approved.status is CostOptimizationStatus.APPROVED
        assert await store.ttl(OPTIMIZATION_KIND, optimization.id) == -1

    @pytest.mark.asyncio
    async def test_approve_twice_raises(self, right_sizing):
        optimizer, optimization = right_sizing
        await optimizer.approve(optimization.id)

        with pytest.raises(InvalidStateError):
            await optimizer.approve(optimization.id)

    @pytest.mark.asyncio
    async def test_implement_requires_approval(self, right_sizing):
        optimizer, optimization = right_sizing

        with pytest.raises(InvalidStateError):
            await optimizer.implement(optimization.id)

    @pytest.mark.asyncio
    async def test_implement(self, right_sizing, executor):
        optimizer, optimization = right_sizing
        await optimizer.approve(optimization.id)

        result = await optimizer.implement(optimization.id)

        assert result.success is True
        assert result.actual_savings.amount == pytest.approx(320)
        assert result.rollback_required is False
        assert result.implementation_cost == 700
        assert executor.implemented == [optimization.id]

        stored = await optimizer.get_optimization(optimization.id)
        assert stored.status is CostOptimizationStatus.COMPLETED
        assert stored.implemented_at is not None
        assert stored.result.success is True

    @pytest.mark.asyncio
    async def test_failed_implementation(self, store, failing_executor):
        optimizer = CostOptimizer(
            store, executor=failing_executor, source=single_resource_source(CostResourceType.CPU, 0.3, 800)
        )
        optimization = (await optimizer.identify_optimizations())[0]
        await optimizer.approve(optimization.id)

        result = await optimizer.implement(optimization.id)

        assert result.success is False
        assert result.errors == ["boom"]
        assert result.actual_savings.amount == 0
        assert result.rollback_required is True
        assert (await optimizer.get_optimization(optimization.id)).status is CostOptimizationStatus.FAILED

    @pytest.mark.asyncio
    async def test_raising_executor_flags_rollback(self, right_sizing, executor):
        async def explode(optimization):
            raise RuntimeError("billing api down")

        executor.implement = explode
        optimizer, optimization = right_sizing
        await optimizer.approve(optimization.id)

        result = await optimizer.implement(optimization.id)

        assert result.success is False
        assert result.errors == ["billing api down"]
        assert result.rollback_required is True
        stored = await optimizer.get_optimization(optimization.id)
        assert stored.result.rollback_required is True

    @pytest.mark.asyncio
    async def test_cancel(self, right_sizing):
        optimizer, optimization = right_sizing

        cancelled = await optimizer.cancel(optimization.id)

        assert cancelled.status is CostOptimizationStatus.CANCELLED
        with pytest.raises(InvalidStateError):
            await optimizer.approve(optimization.id)

    @pytest.mark.asyncio
    async def test_list_by_status(self, right_sizing):
        optimizer, optimization = right_sizing
        await optimizer.approve(optimization.id)

        approved = await optimizer.list_optimizations(CostOptimizationStatus.APPROVED)

        assert [o.id for o in approved] == [optimization.id]
        assert await optimizer.list_optimizations(CostOptimizationStatus.FAILED) == []

    @pytest.mark.asyncio
    async def test_unknown_optimization(self, cost_optimizer):
        with pytest.raises(RecordNotFoundError):
            await cost_optimizer.get_optimization("missing")


class TestForecasting:
    """Test cost trends and projections."""

    @pytest.mark.asyncio
    async def test_flat_history_is_stable(self, cost_optimizer):
        forecast = await cost_optimizer.forecast(CostResourceType.CPU, 30)

        assert forecast.current_trend.direction is CostTrendDirection.STABLE
        assert forecast.sample_count == 90
        assert forecast.confidence == pytest.approx(0.81)

        timeline = forecast.projected_cost.timeline
        assert len(timeline) == 31
        assert timeline[-1].cost == pytest.approx(800 / 30)
        assert timeline[0].confidence == pytest.approx(0.9)
        assert timeline[-1].confidence == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_rising_history(self, store, executor):
        optimizer = CostOptimizer(store, executor=executor, source=RisingCostSource())

        forecast = await optimizer.forecast(CostResourceType.CPU, 10)

        assert forecast.current_trend.direction is CostTrendDirection.INCREASING
        assert forecast.current_trend.rate > 0
        assert forecast.confidence == pytest.approx(0.63)
        timeline = forecast.projected_cost.timeline
        assert timeline[-1].cost > timeline[0].cost

    @pytest.mark.asyncio
    async def test_scenarios_and_opportunities(self, cost_optimizer):
        forecast = await cost_optimizer.forecast(CostResourceType.CPU, 30)
        final = forecast.projected_cost.timeline[-1].cost

        conservative, aggressive = forecast.projected_cost.scenarios
        assert conservative.timeline[-1].cost == pytest.approx(final * 0.8)
        assert aggressive.timeline[-1].cost == pytest.approx(final * 1.3)
        assert forecast.optimization_opportunities[0].potential_savings == pytest.approx(final * 0.2)

    def test_short_history_has_no_trend(self):
        trend = CostOptimizer.analyze_trend([CostDataPoint(date=utcnow(), cost=10)])

        assert trend.direction is CostTrendDirection.STABLE
        assert trend.rate == 0

    @pytest.mark.asyncio
    async def test_missing_history_uses_placeholder(self, store, executor):
        optimizer = CostOptimizer(store, executor=executor, source=StaticCostSource(costs={}))

        forecast = await optimizer.forecast(CostResourceType.CPU, 5)

        assert forecast.sample_count == 0
        assert forecast.projected_cost.timeline[-1].cost == 100.0
        assert forecast.confidence == 0


class TestCostAlerts:
    """Test budget alerts."""

    @pytest.mark.parametrize("current,threshold,expected", [
        (1600, 1000, CostAlertSeverity.CRITICAL),
        (1300, 1000, CostAlertSeverity.WARNING),
        (1100, 1000, CostAlertSeverity.INFO),
        (10, 0, CostAlertSeverity.CRITICAL),
    ])
    def test_alert_severity(self, current, threshold, expected):
        assert alert_severity(current, threshold) is expected

    @pytest.mark.asyncio
    async def test_budget_exceeded(self, store, executor):
        optimizer = CostOptimizer(
            store, executor=executor,
            source=single_resource_source(CostResourceType.CPU, 0.6, 1600),
            monthly_budget=1000,
        )

        alerts = await optimizer.check_cost_alerts()

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.type is CostAlertType.BUDGET_EXCEEDED
        assert alert.severity is CostAlertSeverity.CRITICAL
        assert alert.projected_value == pytest.approx(1760)
        assert alert.timeframe == "This month"
        assert "Review resource utilization" in alert.recommendations

    @pytest.mark.asyncio
    async def test_budget_forecast_exceeded(self, store, executor):
        optimizer = CostOptimizer(
            store, executor=executor,
            source=single_resource_source(CostResourceType.CPU, 0.6, 950),
            monthly_budget=1000,
        )

        alerts = await optimizer.check_cost_alerts()

        assert [a.type for a in alerts] == [CostAlertType.BUDGET_FORECAST_EXCEEDED]
        assert alerts[0].recommendations == ["Review cost optimization opportunities"]

    @pytest.mark.asyncio
    async def test_within_budget(self, cost_optimizer):
        assert await cost_optimizer.check_cost_alerts() == []

    @pytest.mark.asyncio
    async def test_acknowledge_is_idempotent(self, cost_optimizer):
        alert = await cost_optimizer.create_alert(
            CostResourceType.MEMORY,
            CostAlertType.COST_SPIKE,
            CostThreshold(value=100, period=CostPeriod.DAILY),
            current_value=180,
        )
        assert alert.message == "Cost spike for memory: 180.00 against 100.00"
        assert [a.id for a in await cost_optimizer.list_active_alerts()] == [alert.id]

        first = await cost_optimizer.acknowledge_alert(alert.id)
        second = await cost_optimizer.acknowledge_alert(alert.id)

        assert first.acknowledged is True
        assert second.acknowledged_at == first.acknowledged_at
        assert await cost_optimizer.list_active_alerts() == []

    @pytest.mark.asyncio
    async def test_run_analysis(self, cost_optimizer, store):
        await cost_optimizer.run_analysis()

        assert await cost_optimizer.list_optimizations()
        forecasts = await store.list(FORECAST_KIND, CostForecast)
        assert len(forecasts) == len(CostResourceType)
