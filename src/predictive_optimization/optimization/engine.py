"""
Optimization engine.

Runs the end-to-end optimization cycle: snapshot, detection, prediction,
bottleneck and cost discovery, then fuses the findings into prioritized
``OptimizationDecision``s, applies the auto-approval policy, executes
approved decisions through the two optimizers and reports on the results.
"""

import time
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from predictive_optimization.core.exceptions import (
    InvalidStateError,
    RecordNotFoundError,
    StoreError,
)
from predictive_optimization.core.logging import component_scope, cycle_context, log_execution_time
from predictive_optimization.core.scheduling import PeriodicTask
from predictive_optimization.core.timeutil import utcnow
from predictive_optimization.detection import Anomaly, AnomalyDetector
from predictive_optimization.monitoring.metrics_collector import MetricsCollector
from predictive_optimization.prediction import PerformancePredictor
from predictive_optimization.prediction.models import (
    BottleneckPrediction,
    BottleneckSeverity,
    PerformancePrediction,
    PredictionType,
    TrendDirection,
)
from predictive_optimization.storage.redis_store import OptimizationStore

from .cost_models import CostOptimization, CostOptimizationResult, EffortLevel, RiskImpact
from .cost_optimizer import APPROVABLE, CostOptimizer
from .decisions import (
    ConditionType,
    CostImpact,
    DecisionPriority,
    DecisionResult,
    DecisionRisk,
    DecisionStatus,
    DecisionType,
    DecisionTypeStats,
    EngineStrategy,
    EngineStrategyCondition,
    OptimizationDecision,
    OptimizationImpact,
    OptimizationReport,
    PerformanceImpact,
    ReliabilityImpact,
    ReportMetrics,
    ReportPeriod,
    ReportPeriodType,
    ReportRecommendation,
    ReportRecommendationType,
    ReportSummary,
    ReportTrend,
    ReportTrendDirection,
    Trigger,
    TriggerSeverity,
    TriggerType,
    UserImpact,
)
from .models import OptimizationAction, OptimizationResult, OptimizationStatus
from .resource_optimizer import ResourceOptimizer

logger = structlog.get_logger(__name__)

DECISION_KIND = "decision"
STRATEGY_KIND = "engine_strategy"
REPORT_KIND = "report"

REPORT_TTL = 90 * 24 * 3600
COST_SAVINGS_FLOOR = 100.0
PREDICTION_CONFIDENCE_FLOOR = 0.7
PREDICTION_ANOMALY_FLOOR = 0.5
BOTTLENECK_HORIZON = 3600
ANOMALY_HORIZON = 300

CYCLE_METRICS = (
    "cpu.usage",
    "memory.usage",
    "redis.memory_usage",
    "application.response_time.avg",
)
CYCLE_HORIZONS = (300, 900, 1800, 3600)

SCHEDULED_HOUR = 2
SCHEDULED_WINDOW_MINUTES = 5

TYPE_SCORES = {
    DecisionType.EMERGENCY: 100,
    DecisionType.REACTIVE: 80,
    DecisionType.PREDICTIVE: 60,
    DecisionType.PROACTIVE: 40,
    DecisionType.COST_DRIVEN: 30,
}

SEVERITY_SCORES = {
    TriggerSeverity.CRITICAL: 40,
    TriggerSeverity.HIGH: 30,
    TriggerSeverity.MEDIUM: 20,
    TriggerSeverity.LOW: 10,
}

HIGH_RISK_PENALTY = 10

PERIOD_DURATIONS = {
    ReportPeriodType.HOURLY: timedelta(hours=1),
    ReportPeriodType.DAILY: timedelta(days=1),
    ReportPeriodType.WEEKLY: timedelta(days=7),
    ReportPeriodType.MONTHLY: timedelta(days=30),
}

ACTION_RISK_IMPACT = RiskImpact(
    financial=1000,
    operational="Potential service impact",
    reputation="Minor impact",
    compliance="None",
)

DEFAULT_ENGINE_STRATEGIES = [
    EngineStrategy(
        id="high-cpu-reactive",
        name="High CPU Reactive Optimization",
        description="React to high CPU usage with immediate optimizations",
        decision_type=DecisionType.REACTIVE,
        trigger=TriggerType.ANOMALY_DETECTED,
        conditions=[EngineStrategyCondition(metric="cpu.usage", threshold=0.9, duration=300)],
        priority=1,
        auto_approve=True,
        cooldown=1800,
    ),
    EngineStrategy(
        id="memory-pressure-predictive",
        name="Memory Pressure Predictive Optimization",
        description="Predict and prevent memory exhaustion",
        decision_type=DecisionType.PREDICTIVE,
        trigger=TriggerType.BOTTLENECK_PREDICTED,
        conditions=[EngineStrategyCondition(
            type=ConditionType.PREDICTION_CONFIDENCE, metric="memory.usage", threshold=0.85, duration=1800,
            weight=0.9,
        )],
        priority=2,
        cooldown=3600,
    ),
    EngineStrategy(
        id="cost-optimization-proactive",
        name="Proactive Cost Optimization",
        description="Continuously optimize costs based on usage patterns",
        decision_type=DecisionType.PROACTIVE,
        trigger=TriggerType.SCHEDULED_OPTIMIZATION,
        conditions=[EngineStrategyCondition(type=ConditionType.TIME_BASED, metric="schedule")],
        priority=3,
        auto_approve=True,
        cooldown=86400,
    ),
]


def anomaly_severity(severity: str) -> TriggerSeverity:
    try:
        return TriggerSeverity(severity)
    except ValueError:
        return TriggerSeverity.LOW if severity == "info" else TriggerSeverity.MEDIUM


def bottleneck_severity(severity: BottleneckSeverity) -> TriggerSeverity:
    return TriggerSeverity(severity.value)


def expected_impact(
    actions: Sequence[OptimizationAction],
    cost_optimizations: Sequence[CostOptimization],
) -> OptimizationImpact:
    """Combined expected impact of everything a decision would execute."""
    performance = sum(a.expected_impact.performance_improvement for a in actions)
    savings = sum(a.expected_impact.cost_reduction for a in actions)
    savings += sum(o.savings.amount for o in cost_optimizations)
    implementation = sum(a.cost.implementation for a in actions)
    implementation += sum(o.implementation.total_cost for o in cost_optimizations)

    return OptimizationImpact(
        performance=PerformanceImpact(
            latency_improvement=performance * 50,
            throughput_increase=performance * 20,
            resource_efficiency=performance * 30,
            error_rate_reduction=performance * 10,
        ),
        cost=cost_impact(savings, implementation),
        reliability=reliability_impact(performance),
        user=user_impact(performance),
        confidence=min(1.0, (len(actions) + len(cost_optimizations)) * 0.2),
    )


def cost_impact(savings: float, implementation: float) -> CostImpact:
    return CostImpact(
        monthly_savings=savings,
        implementation_cost=implementation,
        payback_period=implementation / (savings or 1),
        roi=(savings * 12 - implementation) / implementation * 100 if implementation else 0.0,
    )


def reliability_impact(performance: float) -> ReliabilityImpact:
    return ReliabilityImpact(
        availability_improvement=performance * 5,
        mttr_reduction=performance * 30,
        incident_reduction=performance * 25,
        resilience_increase=performance * 20,
    )


def user_impact(performance: float) -> UserImpact:
    return UserImpact(
        affected_users=1000,
        experience_improvement=performance * 15,
        satisfaction_increase=performance * 10,
        feature_availability=100 - performance * 5,
    )


def actual_impact(
    action_results: Sequence[Tuple[OptimizationAction, OptimizationResult]],
    cost_results: Sequence[CostOptimizationResult],
    item_count: int,
) -> OptimizationImpact:
    """Aggregate what execution actually achieved."""
    succeeded = [(a, r) for a, r in action_results if r.success]
    performance = sum(r.actual_impact.performance_change for _, r in succeeded)
    savings = sum(r.actual_impact.cost_change for _, r in succeeded)
    savings += sum(r.actual_savings.amount for r in cost_results if r.success)
    implementation = sum(a.cost.implementation for a, _ in action_results)
    implementation += sum(r.implementation_cost for r in cost_results)

    success_count = len(succeeded) + sum(1 for r in cost_results if r.success)
    return OptimizationImpact(
        performance=PerformanceImpact(
            latency_improvement=sum(-r.actual_impact.latency_change for _, r in succeeded),
            throughput_increase=sum(r.actual_impact.throughput_change for _, r in succeeded),
            resource_efficiency=sum(r.actual_impact.resource_change for _, r in succeeded) * 100,
            error_rate_reduction=performance * 10,
        ),
        cost=cost_impact(savings, implementation),
        reliability=reliability_impact(performance),
        user=user_impact(performance),
        confidence=success_count / item_count if item_count else 0.0,
    )


def decision_risks(
    actions: Iterable[OptimizationAction],
    cost_optimizations: Iterable[CostOptimization],
) -> List[DecisionRisk]:
    risks: List[DecisionRisk] = []
    for action in actions:
        for risk in action.risks:
            risks.append(DecisionRisk(
                type=risk.type,
                severity=risk.severity,
                probability=risk.probability,
                description=risk.description,
                mitigation=risk.mitigation,
                impact=ACTION_RISK_IMPACT.model_copy(),
            ))
    for optimization in cost_optimizations:
        for risk in optimization.risks:
            risks.append(DecisionRisk(
                type=risk.type,
                severity=risk.severity,
                probability=risk.probability,
                description=risk.description,
                mitigation=risk.mitigation,
                impact=risk.impact.model_copy(),
            ))
    return risks


def priority_score(
    decision_type: DecisionType,
    severity: TriggerSeverity,
    impact: OptimizationImpact,
    risks: Sequence[DecisionRisk],
) -> float:
    score = float(TYPE_SCORES[decision_type] + SEVERITY_SCORES[severity])
    score += impact.cost.monthly_savings / 100
    score += impact.performance.latency_improvement / 10
    score -= sum(1 for risk in risks if risk.severity.is_high) * HIGH_RISK_PENALTY
    return score


def priority_from_score(score: float) -> DecisionPriority:
    if score >= 100:
        return DecisionPriority.CRITICAL
    if score >= 70:
        return DecisionPriority.HIGH
    if score >= 40:
        return DecisionPriority.MEDIUM
    return DecisionPriority.LOW


def auto_approvable(priority: DecisionPriority, risks: Sequence[DecisionRisk]) -> bool:
    """Only LOW priority decisions without HIGH/CRITICAL risks may skip review."""
    return priority is DecisionPriority.LOW and not any(risk.severity.is_high for risk in risks)


def should_auto_approve(
    decision_type: DecisionType,
    priority: DecisionPriority,
    risks: Sequence[DecisionRisk],
) -> bool:
    return decision_type is DecisionType.COST_DRIVEN and auto_approvable(priority, risks)


def prioritize(decisions: List[OptimizationDecision]) -> List[OptimizationDecision]:
    return sorted(
        decisions,
        key=lambda d: (-d.priority.rank, -d.expected_impact.cost.monthly_savings),
    )


def _direction(first: float, second: float, tolerance: float = 0.05) -> Tuple[ReportTrendDirection, float]:
    if first == second:
        return ReportTrendDirection.STABLE, 0.0
    magnitude = abs(second - first) / abs(first) if first else 1.0
    if magnitude < tolerance:
        return ReportTrendDirection.STABLE, magnitude
    if second > first:
        return ReportTrendDirection.IMPROVING, magnitude
    return ReportTrendDirection.DEGRADING, magnitude


def _is_successful(decision: OptimizationDecision) -> bool:
    return decision.status is DecisionStatus.COMPLETED and decision.result is not None and decision.result.success


class OptimizationEngine:
    """
    Orchestrates one optimization cycle at a time.

    Decisions are persisted under ``decision:<id>``; the engine never holds
    live handles to actions or cost optimizations, only their ids and the
    snapshots taken when the decision was made.
    """

    def __init__(
        self,
        store: OptimizationStore,
        collector: MetricsCollector,
        predictor: PerformancePredictor,
        detector: AnomalyDetector,
        resource_optimizer: ResourceOptimizer,
        cost_optimizer: CostOptimizer,
        interval: float = 300,
        cost_savings_floor: float = COST_SAVINGS_FLOOR,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.collector = collector
        self.predictor = predictor
        self.detector = detector
        self.resource_optimizer = resource_optimizer
        self.cost_optimizer = cost_optimizer
        self.cost_savings_floor = cost_savings_floor
        self.clock = clock

        self.strategies: Dict[str, EngineStrategy] = {}
        self._cycle_running = False
        self._task = PeriodicTask("optimization-cycle", interval, self.run_cycle, on_stop=self.save_strategies)

        logger.info("OptimizationEngine initialized", interval=interval)

    async def start(self) -> None:
        with component_scope("optimization_engine"):
            await self.load_strategies()
            await self.initialize_default_strategies()
            self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    # Strategies

    async def load_strategies(self) -> int:
        try:
            strategies = await self.store.list(STRATEGY_KIND, EngineStrategy)
        except StoreError as e:
            logger.warning("Could not load engine strategies", error=str(e))
            return 0
        for strategy in strategies:
            self.strategies[strategy.id] = strategy
        logger.info("Engine strategies loaded", count=len(strategies))
        return len(strategies)

    async def initialize_default_strategies(self) -> int:
        added = 0
        for strategy in DEFAULT_ENGINE_STRATEGIES:
            if strategy.id not in self.strategies:
                self.strategies[strategy.id] = strategy.model_copy(deep=True)
                await self.store.save(STRATEGY_KIND, strategy.id, self.strategies[strategy.id])
                added += 1
        return added

    async def save_strategies(self) -> None:
        for strategy in self.strategies.values():
            await self.store.save(STRATEGY_KIND, strategy.id, strategy)
        logger.info("Engine strategies saved", count=len(self.strategies))

    async def set_strategy_enabled(self, strategy_id: str, enabled: bool) -> EngineStrategy:
        strategy = self.strategies.get(strategy_id)
        if strategy is None:
            raise RecordNotFoundError(STRATEGY_KIND, strategy_id)
        strategy.enabled = enabled
        await self.store.save(STRATEGY_KIND, strategy.id, strategy)
        return strategy

    def matching_strategy(self, trigger: Trigger) -> Optional[EngineStrategy]:
        candidates = [s for s in self.strategies.values() if s.matches(trigger)]
        if not candidates:
            return None
        return min(candidates, key=lambda s: s.priority)

    async def _claim_strategy(self, strategy: EngineStrategy) -> bool:
        """Start the strategy's cooldown window; False while one is active."""
        if strategy.cooldown > 0:
            try:
                claimed = await self.store.acquire_cooldown(f"{STRATEGY_KIND}:{strategy.id}", strategy.cooldown)
            except StoreError as e:
                logger.warning("Cooldown check failed", strategy_id=strategy.id, error=str(e))
                return False
            if not claimed:
                return False
        strategy.last_executed = utcnow()
        return True

    # Decision construction

    def create_decision(
        self,
        decision_type: DecisionType,
        trigger: Trigger,
        actions: Sequence[OptimizationAction],
        cost_optimizations: Sequence[CostOptimization] = (),
    ) -> OptimizationDecision:
        impact = expected_impact(actions, cost_optimizations)
        risks = decision_risks(actions, cost_optimizations)
        score = priority_score(decision_type, trigger.severity, impact, risks)
        priority = priority_from_score(score)

        return OptimizationDecision(
            type=decision_type,
            priority=priority,
            priority_score=score,
            trigger=trigger,
            actions=list(actions),
            cost_optimizations=list(cost_optimizations),
            expected_impact=impact,
            risks=risks,
            auto_approve=should_auto_approve(decision_type, priority, risks),
        )

    async def apply_strategy(self, decision: OptimizationDecision) -> None:
        """
        Tag the decision with its engine strategy.

        A strategy can only narrow the auto-approval policy: one without
        ``auto_approve`` holds the decision for review, and one with it lets a
        single decision through per cooldown window.
        """
        strategy = self.matching_strategy(decision.trigger)
        if strategy is None:
            return

        decision.strategy_id = strategy.id
        if not decision.auto_approve:
            return
        if strategy.auto_approve and await self._claim_strategy(strategy):
            return
        decision.auto_approve = False
        logger.info("Strategy held decision for review", strategy_id=strategy.id, decision_id=decision.id)

    @staticmethod
    def anomaly_prediction(anomaly: Anomaly) -> PerformancePrediction:
        return PerformancePrediction(
            id=anomaly.id,
            metric_name=anomaly.metric_name,
            prediction_type=PredictionType.ANOMALY_DETECTION,
            time_horizon=ANOMALY_HORIZON,
            predicted_value=anomaly.value,
            confidence=anomaly.confidence,
            trend=TrendDirection.VOLATILE,
            anomaly_score=1.0,
            generated_at=anomaly.detected_at,
            valid_until=anomaly.detected_at + timedelta(hours=1),
        )

    async def decisions_for_anomalies(self, anomalies: Iterable[Anomaly]) -> List[OptimizationDecision]:
        decisions = []
        for anomaly in anomalies:
            actions = await self.resource_optimizer.optimize_for_prediction(self.anomaly_prediction(anomaly))
            if not actions:
                continue
            trigger = Trigger(
                type=TriggerType.ANOMALY_DETECTED,
                source="anomaly-detector",
                description=f"Anomaly detected in {anomaly.metric_name}",
                severity=anomaly_severity(anomaly.severity.value),
                subject_id=anomaly.id,
                metric_name=anomaly.metric_name,
                value=anomaly.value,
            )
            decisions.append(self.create_decision(DecisionType.REACTIVE, trigger, actions))
        return decisions

    async def decisions_for_predictions(
        self,
        predictions: Iterable[PerformancePrediction],
    ) -> List[OptimizationDecision]:
        decisions = []
        for prediction in predictions:
            if prediction.confidence <= PREDICTION_CONFIDENCE_FLOOR:
                continue
            if prediction.anomaly_score <= PREDICTION_ANOMALY_FLOOR:
                continue
            actions = await self.resource_optimizer.optimize_for_prediction(prediction)
            if not actions:
                continue
            trigger = Trigger(
                type=TriggerType.BOTTLENECK_PREDICTED,
                source="performance-predictor",
                description=f"Performance issue predicted for {prediction.metric_name}",
                severity=TriggerSeverity.MEDIUM,
                subject_id=prediction.id,
                metric_name=prediction.metric_name,
                value=prediction.predicted_value,
            )
            decisions.append(self.create_decision(DecisionType.PREDICTIVE, trigger, actions))
        return decisions

    async def decisions_for_bottlenecks(
        self,
        bottlenecks: Iterable[BottleneckPrediction],
    ) -> List[OptimizationDecision]:
        decisions = []
        for bottleneck in bottlenecks:
            actions = await self.resource_optimizer.optimize_for_bottleneck(bottleneck)
            if not actions:
                continue
            severity = bottleneck_severity(bottleneck.severity)
            trigger = Trigger(
                type=TriggerType.RESOURCE_EXHAUSTION,
                source="performance-predictor",
                description=f"Resource bottleneck predicted: {bottleneck.resource_type.value}",
                severity=severity,
                subject_id=bottleneck.id,
                metric_name=bottleneck.metric_name,
                value=bottleneck.predicted_value,
            )
            decisions.append(self.create_decision(DecisionType.PREDICTIVE, trigger, actions))
        return decisions

    def decisions_for_costs(self, cost_optimizations: Iterable[CostOptimization]) -> List[OptimizationDecision]:
        decisions = []
        for optimization in cost_optimizations:
            if optimization.savings.amount <= self.cost_savings_floor:
                continue
            trigger = Trigger(
                type=TriggerType.COST_THRESHOLD_EXCEEDED,
                source="cost-optimizer",
                description=f"Cost optimization opportunity: {optimization.description}",
                severity=TriggerSeverity.LOW,
                subject_id=optimization.id,
                value=optimization.savings.amount,
            )
            decisions.append(self.create_decision(DecisionType.COST_DRIVEN, trigger, [], [optimization]))
        return decisions

    def in_scheduled_window(self, now: Optional[datetime] = None) -> bool:
        now = now or self.clock()
        return now.hour == SCHEDULED_HOUR and now.minute < SCHEDULED_WINDOW_MINUTES

    async def scheduled_decisions(
        self,
        cost_optimizations: Iterable[CostOptimization],
    ) -> List[OptimizationDecision]:
        if not self.in_scheduled_window():
            return []

        scheduled_trigger = Trigger(
            type=TriggerType.SCHEDULED_OPTIMIZATION,
            source="optimization-engine",
            description="Scheduled optimization window",
            severity=TriggerSeverity.LOW,
        )
        strategy = self.matching_strategy(scheduled_trigger)
        if strategy is None or not await self._claim_strategy(strategy):
            return []

        decisions = []
        for optimization in cost_optimizations:
            trigger = scheduled_trigger.model_copy(update={
                "description": f"Scheduled optimization: {optimization.description}",
                "subject_id": optimization.id,
                "value": optimization.savings.amount,
            })
            decision = self.create_decision(DecisionType.PROACTIVE, trigger, [], [optimization])
            decision.strategy_id = strategy.id
            decisions.append(decision)

        logger.info("Scheduled optimizations generated", strategy_id=strategy.id, count=len(decisions))
        return decisions

    # Cycle

    async def _predictions(self) -> List[PerformancePrediction]:
        predictions = []
        for metric_name in CYCLE_METRICS:
            for horizon in CYCLE_HORIZONS:
                try:
                    predictions.append(await self.predictor.predict(metric_name, horizon))
                except StoreError as e:
                    logger.error("Cycle prediction failed", metric=metric_name, horizon=horizon, error=str(e))
        return predictions

    async def run_cycle(self) -> List[OptimizationDecision]:
        """
        Run one full optimization cycle and return its decisions, highest
        priority first.

        Returns an empty list when another cycle is still running.
        """
        if self._cycle_running:
            logger.warning("Optimization cycle already in progress, skipping")
            return []

        self._cycle_running = True
        try:
            with cycle_context() as cycle_id:
                return await self._run_cycle(cycle_id)
        finally:
            self._cycle_running = False

    @log_execution_time("optimization_cycle")
    async def _run_cycle(self, cycle_id: str) -> List[OptimizationDecision]:
        logger.info("Starting optimization cycle", cycle_id=cycle_id)

        snapshot = await self.collector.collect_snapshot()
        anomalies = await self.detector.detect(snapshot)
        predictions = await self._predictions()
        bottlenecks = await self.predictor.predict_bottlenecks(BOTTLENECK_HORIZON)
        cost_optimizations = await self.cost_optimizer.identify_optimizations()

        decisions: List[OptimizationDecision] = []
        decisions.extend(await self.decisions_for_anomalies(anomalies))
        decisions.extend(await self.decisions_for_predictions(predictions))
        decisions.extend(await self.decisions_for_bottlenecks(bottlenecks))
        decisions.extend(self.decisions_for_costs(cost_optimizations))
        decisions.extend(await self.scheduled_decisions(cost_optimizations))

        decisions = [d for d in decisions if d.item_count > 0]
        for decision in decisions:
            await self.apply_strategy(decision)

        processed: List[OptimizationDecision] = []
        for decision in prioritize(decisions):
            if decision.auto_approve:
                decision.status = DecisionStatus.APPROVED
                decision.approved_at = utcnow()
                await self._save(decision)
                logger.info("Decision auto-approved", decision_id=decision.id, type=decision.type.value)
                decision = await self.execute_decision(decision.id)
            else:
                await self._save(decision)
            processed.append(decision)

        logger.info(
            "Optimization cycle completed",
            cycle_id=cycle_id,
            anomalies=len(anomalies),
            predictions=len(predictions),
            bottlenecks=len(bottlenecks),
            cost_optimizations=len(cost_optimizations),
            decisions=len(processed),
            auto_approved=sum(1 for d in processed if d.auto_approve),
        )
        return processed

    # Decision lifecycle

    async def _save(self, decision: OptimizationDecision) -> None:
        await self.store.save(DECISION_KIND, decision.id, decision)

    async def get_decision(self, decision_id: str) -> OptimizationDecision:
        return await self.store.require(DECISION_KIND, decision_id, OptimizationDecision)

    async def list_decisions(self, status: Optional[DecisionStatus] = None) -> List[OptimizationDecision]:
        try:
            decisions = await self.store.list(DECISION_KIND, OptimizationDecision)
        except StoreError as e:
            logger.warning("Could not list decisions", error=str(e))
            return []
        if status is not None:
            decisions = [d for d in decisions if d.status is status]
        return sorted(decisions, key=lambda d: d.created_at, reverse=True)

    def _require_status(self, decision: OptimizationDecision, *allowed: DecisionStatus) -> None:
        if decision.status not in allowed:
            raise InvalidStateError(DECISION_KIND, decision.id, decision.status.value, [s.value for s in allowed])

    async def approve(self, decision_id: str) -> OptimizationDecision:
        """Approve a PENDING decision and execute it."""
        decision = await self.get_decision(decision_id)
        self._require_status(decision, DecisionStatus.PENDING)

        decision.status = DecisionStatus.APPROVED
        decision.approved_at = utcnow()
        await self._save(decision)
        logger.info("Decision approved", decision_id=decision_id)

        return await self.execute_decision(decision_id)

    async def reject(self, decision_id: str, reason: str) -> OptimizationDecision:
        decision = await self.get_decision(decision_id)
        self._require_status(decision, DecisionStatus.PENDING)

        decision.status = DecisionStatus.REJECTED
        decision.rejection_reason = reason
        decision.completed_at = utcnow()
        await self._save(decision)
        logger.info("Decision rejected", decision_id=decision_id, reason=reason)
        return decision

    async def cancel(self, decision_id: str, reason: Optional[str] = None) -> OptimizationDecision:
        decision = await self.get_decision(decision_id)
        self._require_status(decision, DecisionStatus.PENDING, DecisionStatus.APPROVED)

        decision.status = DecisionStatus.CANCELLED
        decision.rejection_reason = reason
        decision.completed_at = utcnow()
        await self._save(decision)
        logger.info("Decision cancelled", decision_id=decision_id)
        return decision

    async def _execute_action(
        self,
        action: OptimizationAction,
        errors: List[str],
    ) -> Optional[OptimizationResult]:
        try:
            current = await self.resource_optimizer.get_action(action.id)
            if current.status is OptimizationStatus.PENDING:
                await self.resource_optimizer.approve_action(action.id)
            result = await self.resource_optimizer.execute(action.id)
        except (InvalidStateError, RecordNotFoundError) as e:
            errors.append(str(e))
            return None
        errors.extend(result.errors)
        return result

    async def _implement(
        self,
        optimization: CostOptimization,
        errors: List[str],
    ) -> Optional[CostOptimizationResult]:
        try:
            current = await self.cost_optimizer.get_optimization(optimization.id)
            if current.status in APPROVABLE:
                await self.cost_optimizer.approve(optimization.id)
            result = await self.cost_optimizer.implement(optimization.id)
        except (InvalidStateError, RecordNotFoundError) as e:
            errors.append(str(e))
            return None
        errors.extend(result.errors)
        return result

    async def execute_decision(self, decision_id: str) -> OptimizationDecision:
        """
        Execute every action and cost optimization of an APPROVED decision.

        Item failures are collected into the decision result; the decision is
        COMPLETED only when every item succeeded and is never retried.
        """
        decision = await self.get_decision(decision_id)
        self._require_status(decision, DecisionStatus.APPROVED)

        decision.status = DecisionStatus.EXECUTING
        decision.executed_at = utcnow()
        await self._save(decision)

        started = time.perf_counter()
        errors: List[str] = []
        action_results: List[Tuple[OptimizationAction, OptimizationResult]] = []
        cost_results: List[CostOptimizationResult] = []

        for action in decision.actions:
            result = await self._execute_action(action, errors)
            if result is not None:
                action_results.append((action, result))

        for optimization in decision.cost_optimizations:
            cost_result = await self._implement(optimization, errors)
            if cost_result is not None:
                cost_results.append(cost_result)

        succeeded = (
            sum(1 for _, r in action_results if r.success) + sum(1 for r in cost_results if r.success)
        )
        success = succeeded == decision.item_count and not errors

        if success:
            lessons = ["Optimization executed successfully"]
            recommendations = ["Monitor performance for next 24 hours"]
        else:
            lessons = ["Execution failed - review implementation"]
            recommendations = ["Investigate failure cause", "Consider rollback if needed"]

        decision.result = DecisionResult(
            success=success,
            actual_impact=actual_impact(action_results, cost_results, decision.item_count),
            execution_time=time.perf_counter() - started,
            errors=errors,
            rollback_required=not success,
            lessons_learned=lessons,
            recommendations=recommendations,
        )
        decision.status = DecisionStatus.COMPLETED if success else DecisionStatus.FAILED
        decision.completed_at = utcnow()
        await self._save(decision)

        if success:
            logger.info("Decision executed", decision_id=decision_id, items=decision.item_count)
        else:
            logger.error("Decision execution failed", decision_id=decision_id, errors=errors)
        return decision

    # Reporting

    @staticmethod
    def summarize(decisions: Sequence[OptimizationDecision]) -> ReportSummary:
        successful = [d for d in decisions if _is_successful(d)]
        failed = [d for d in decisions if d.status is DecisionStatus.FAILED]
        pending = [d for d in decisions if d.status is DecisionStatus.PENDING]

        def savings(d: OptimizationDecision) -> float:
            return d.result.actual_impact.cost.monthly_savings if d.result else 0.0

        def latency(d: OptimizationDecision) -> float:
            return d.result.actual_impact.performance.latency_improvement if d.result else 0.0

        stats: List[DecisionTypeStats] = []
        for decision_type in DecisionType:
            group = [d for d in decisions if d.type is decision_type]
            if not group:
                continue
            wins = [d for d in group if _is_successful(d)]
            stats.append(DecisionTypeStats(
                type=decision_type,
                count=len(group),
                success_rate=len(wins) / len(group),
                average_savings=sum(savings(d) for d in wins) / len(wins) if wins else 0.0,
                average_impact=sum(latency(d) for d in wins) / len(wins) if wins else 0.0,
            ))

        return ReportSummary(
            total_decisions=len(decisions),
            successful_optimizations=len(successful),
            failed_optimizations=len(failed),
            pending_decisions=len(pending),
            total_cost_savings=sum(savings(d) for d in successful),
            total_performance_improvement=sum(latency(d) for d in successful),
            average_execution_time=(
                sum(d.result.execution_time for d in successful if d.result) / len(successful) if successful else 0.0
            ),
            top_optimization_types=sorted(stats, key=lambda s: s.count, reverse=True),
        )

    @staticmethod
    def report_metrics(decisions: Sequence[OptimizationDecision]) -> ReportMetrics:
        total = len(decisions)
        successful = sum(1 for d in decisions if _is_successful(d))
        failed = sum(1 for d in decisions if d.status is DecisionStatus.FAILED)
        approved = sum(1 for d in decisions if d.approved_at is not None)
        rejected = sum(1 for d in decisions if d.status is DecisionStatus.REJECTED)

        return ReportMetrics(
            optimization_effectiveness=successful / (successful + failed) if successful + failed else 0.0,
            automation_rate=sum(1 for d in decisions if d.auto_approve) / total if total else 0.0,
            approval_rate=approved / (approved + rejected) if approved + rejected else 0.0,
            average_priority_score=sum(d.priority_score for d in decisions) / total if total else 0.0,
        )

    @staticmethod
    def analyze_trends(
        decisions: Sequence[OptimizationDecision],
        start: datetime,
        end: datetime,
        timeframe: str,
    ) -> List[ReportTrend]:
        """Compare the first half of the period with the second half."""
        midpoint = start + (end - start) / 2
        first = [d for d in decisions if d.created_at < midpoint]
        second = [d for d in decisions if d.created_at >= midpoint]

        def performance(group: Sequence[OptimizationDecision]) -> float:
            wins = [d for d in group if _is_successful(d) and d.result]
            if not wins:
                return 0.0
            return sum(d.result.actual_impact.performance.latency_improvement for d in wins) / len(wins)

        def cost(group: Sequence[OptimizationDecision]) -> float:
            return sum(d.result.actual_impact.cost.monthly_savings for d in group if _is_successful(d) and d.result)

        def reliability(group: Sequence[OptimizationDecision]) -> float:
            finished = [d for d in group if d.status in (DecisionStatus.COMPLETED, DecisionStatus.FAILED)]
            if not finished:
                return 0.0
            return sum(1 for d in finished if _is_successful(d)) / len(finished)

        confidence = min(1.0, len(decisions) / 10)
        trends = []
        for name, measure in (
            ("performance_improvement", performance),
            ("cost_savings", cost),
            ("optimization_success_rate", reliability),
        ):
            direction, magnitude = _direction(measure(first), measure(second))
            trends.append(ReportTrend(
                metric=name,
                direction=direction,
                magnitude=magnitude,
                confidence=confidence,
                timeframe=timeframe,
            ))
        return trends

    @staticmethod
    def report_recommendations(metrics: ReportMetrics) -> List[ReportRecommendation]:
        recommendations = []
        if metrics.automation_rate < 0.3:
            recommendations.append(ReportRecommendation(
                type=ReportRecommendationType.AUTOMATION_OPPORTUNITY,
                priority=DecisionPriority.HIGH,
                title="Increase Automation Rate",
                description=(
                    "Current automation rate is low. Consider enabling auto-approval for low-risk optimizations."
                ),
                expected_benefit="Faster response to optimization opportunities",
                effort=EffortLevel.MEDIUM,
                timeframe="2-3 weeks",
            ))
        if metrics.optimization_effectiveness < 0.7:
            recommendations.append(ReportRecommendation(
                type=ReportRecommendationType.PROCESS_IMPROVEMENT,
                priority=DecisionPriority.HIGH,
                title="Improve Optimization Success Rate",
                description="Review failed optimizations and improve implementation processes.",
                expected_benefit="Higher success rate and better system performance",
                effort=EffortLevel.HIGH,
                timeframe="1-2 months",
            ))
        return recommendations

    async def generate_report(self, period: ReportPeriodType = ReportPeriodType.DAILY) -> OptimizationReport:
        end = utcnow()
        start = end - PERIOD_DURATIONS[period]
        decisions = [d for d in await self.list_decisions() if start <= d.created_at <= end]

        metrics = self.report_metrics(decisions)
        report = OptimizationReport(
            period=ReportPeriod(start=start, end=end, duration=(end - start).total_seconds(), type=period),
            summary=self.summarize(decisions),
            decision_ids=[d.id for d in decisions],
            metrics=metrics,
            trends=self.analyze_trends(decisions, start, end, period.value),
            recommendations=self.report_recommendations(metrics),
        )

        await self.store.save(REPORT_KIND, report.id, report, ttl=REPORT_TTL)
        logger.info(
            "Optimization report generated",
            report_id=report.id,
            period=period.value,
            decisions=len(decisions),
        )
        return report


__all__ = [
    "OptimizationEngine",
    "DEFAULT_ENGINE_STRATEGIES",
    "expected_impact",
    "priority_score",
    "priority_from_score",
    "should_auto_approve",
    "prioritize",
]
