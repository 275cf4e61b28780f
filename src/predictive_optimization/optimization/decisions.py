"""
Decision, engine strategy and report models for the optimization engine.

A decision keeps snapshots of the actions and cost optimizations it was
built from; the optimizers own the live records and the engine only goes
through them by id.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from predictive_optimization.core.timeutil import utcnow

from .cost_models import CostOptimization, CostRiskType, EffortLevel, RiskImpact
from .models import ComparisonOperator, OptimizationAction, RiskSeverity, RiskType


class DecisionType(str, Enum):
    REACTIVE = "reactive"
    PREDICTIVE = "predictive"
    PROACTIVE = "proactive"
    COST_DRIVEN = "cost_driven"
    EMERGENCY = "emergency"


class TriggerType(str, Enum):
    ANOMALY_DETECTED = "anomaly_detected"
    BOTTLENECK_PREDICTED = "bottleneck_predicted"
    PERFORMANCE_DEGRADATION = "performance_degradation"
    COST_THRESHOLD_EXCEEDED = "cost_threshold_exceeded"
    RESOURCE_EXHAUSTION = "resource_exhaustion"
    SCHEDULED_OPTIMIZATION = "scheduled_optimization"


class TriggerSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DecisionPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK = {
    DecisionPriority.CRITICAL: 4,
    DecisionPriority.HIGH: 3,
    DecisionPriority.MEDIUM: 2,
    DecisionPriority.LOW: 1,
}


class DecisionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Trigger(BaseModel):
    type: TriggerType
    source: str
    description: str
    severity: TriggerSeverity
    subject_id: Optional[str] = None
    metric_name: Optional[str] = None
    value: Optional[float] = None


# Impact

class PerformanceImpact(BaseModel):
    latency_improvement: float = 0.0  # ms
    throughput_increase: float = 0.0  # percent
    resource_efficiency: float = 0.0  # percent
    error_rate_reduction: float = 0.0  # percent


class CostImpact(BaseModel):
    monthly_savings: float = 0.0
    implementation_cost: float = 0.0
    payback_period: float = 0.0  # months
    roi: float = 0.0  # percent


class ReliabilityImpact(BaseModel):
    availability_improvement: float = 0.0
    mttr_reduction: float = 0.0  # minutes
    incident_reduction: float = 0.0
    resilience_increase: float = 0.0


class UserImpact(BaseModel):
    affected_users: int = 0
    experience_improvement: float = 0.0
    satisfaction_increase: float = 0.0
    feature_availability: float = 100.0


class OptimizationImpact(BaseModel):
    performance: PerformanceImpact = Field(default_factory=PerformanceImpact)
    cost: CostImpact = Field(default_factory=CostImpact)
    reliability: ReliabilityImpact = Field(default_factory=ReliabilityImpact)
    user: UserImpact = Field(default_factory=UserImpact)
    confidence: float = 0.0


class DecisionRisk(BaseModel):
    type: Union[RiskType, CostRiskType]
    severity: RiskSeverity
    probability: float
    description: str
    mitigation: str
    impact: RiskImpact = Field(default_factory=RiskImpact)


class DecisionResult(BaseModel):
    success: bool
    actual_impact: OptimizationImpact
    execution_time: float = 0.0  # seconds
    errors: List[str] = Field(default_factory=list)
    rollback_required: bool = False
    lessons_learned: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class OptimizationDecision(BaseModel):
    """One or more remediations grouped under a single trigger and priority."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: DecisionType
    priority: DecisionPriority
    priority_score: float = 0.0
    trigger: Trigger
    actions: List[OptimizationAction] = Field(default_factory=list)
    cost_optimizations: List[CostOptimization] = Field(default_factory=list)
    expected_impact: OptimizationImpact
    risks: List[DecisionRisk] = Field(default_factory=list)
    auto_approve: bool = False
    strategy_id: Optional[str] = None
    status: DecisionStatus = DecisionStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    approved_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    result: Optional[DecisionResult] = None

    @property
    def action_ids(self) -> List[str]:
        return [action.id for action in self.actions]

    @property
    def cost_optimization_ids(self) -> List[str]:
        return [optimization.id for optimization in self.cost_optimizations]

    @property
    def item_count(self) -> int:
        return len(self.actions) + len(self.cost_optimizations)

    @property
    def high_risks(self) -> List[DecisionRisk]:
        return [risk for risk in self.risks if risk.severity.is_high]


# Engine strategies

class ConditionType(str, Enum):
    METRIC_THRESHOLD = "metric_threshold"
    ANOMALY_DETECTED = "anomaly_detected"
    PREDICTION_CONFIDENCE = "prediction_confidence"
    COST_THRESHOLD = "cost_threshold"
    TIME_BASED = "time_based"


class EngineStrategyCondition(BaseModel):
    type: ConditionType = ConditionType.METRIC_THRESHOLD
    metric: str
    operator: ComparisonOperator = ComparisonOperator.GT
    threshold: float = 0.0
    duration: int = 0
    weight: float = 1.0


class EngineStrategy(BaseModel):
    """Decision-level policy: which triggers it covers and whether it may auto-approve."""

    id: str
    name: str
    description: str = ""
    decision_type: DecisionType
    trigger: TriggerType
    conditions: List[EngineStrategyCondition] = Field(default_factory=list)
    priority: int = 5
    enabled: bool = True
    auto_approve: bool = False
    cooldown: int = 0  # seconds
    last_executed: Optional[datetime] = None

    def matches(self, trigger: Trigger) -> bool:
        """Whether this strategy covers a decision raised by ``trigger``."""
        if not self.enabled or trigger.type is not self.trigger:
            return False

        for condition in self.conditions:
            if condition.type is ConditionType.TIME_BASED:
                continue
            if trigger.metric_name is None or condition.metric not in trigger.metric_name:
                return False
            if trigger.value is None or not condition.operator.holds(trigger.value, condition.threshold):
                return False
        return True


# Reports

class ReportPeriodType(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ReportPeriod(BaseModel):
    start: datetime
    end: datetime
    duration: float  # seconds
    type: ReportPeriodType


class DecisionTypeStats(BaseModel):
    type: DecisionType
    count: int
    success_rate: float
    average_savings: float
    average_impact: float


class ReportSummary(BaseModel):
    total_decisions: int = 0
    successful_optimizations: int = 0
    failed_optimizations: int = 0
    pending_decisions: int = 0
    total_cost_savings: float = 0.0
    total_performance_improvement: float = 0.0
    average_execution_time: float = 0.0
    top_optimization_types: List[DecisionTypeStats] = Field(default_factory=list)


class ReportMetrics(BaseModel):
    optimization_effectiveness: float = 0.0
    automation_rate: float = 0.0
    approval_rate: float = 0.0
    average_priority_score: float = 0.0


class ReportTrendDirection(str, Enum):
    IMPROVING = "improving"
    DEGRADING = "degrading"
    STABLE = "stable"
    VOLATILE = "volatile"


class ReportTrend(BaseModel):
    metric: str
    direction: ReportTrendDirection
    magnitude: float
    confidence: float
    timeframe: str


class ReportRecommendationType(str, Enum):
    STRATEGY_IMPROVEMENT = "strategy_improvement"
    NEW_OPTIMIZATION = "new_optimization"
    PROCESS_IMPROVEMENT = "process_improvement"
    MONITORING_ENHANCEMENT = "monitoring_enhancement"
    AUTOMATION_OPPORTUNITY = "automation_opportunity"


class ReportRecommendation(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    type: ReportRecommendationType
    priority: DecisionPriority
    title: str
    description: str
    expected_benefit: str
    effort: EffortLevel
    timeframe: str


class OptimizationReport(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    period: ReportPeriod
    summary: ReportSummary
    decision_ids: List[str] = Field(default_factory=list)
    metrics: ReportMetrics
    trends: List[ReportTrend] = Field(default_factory=list)
    recommendations: List[ReportRecommendation] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)
