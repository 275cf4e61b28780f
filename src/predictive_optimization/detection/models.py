"""
Anomaly detection data models.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from predictive_optimization.core.timeutil import utcnow


class AnomalyType(str, Enum):
    SPIKE = "spike"
    DROP = "drop"
    TREND_CHANGE = "trend_change"
    SEASONAL_DEVIATION = "seasonal_deviation"
    PATTERN_BREAK = "pattern_break"
    OUTLIER = "outlier"
    CORRELATION_BREAK = "correlation_break"


class AnomalySeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class AnomalyStatus(str, Enum):
    ACTIVE = "active"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"
    SUPPRESSED = "suppressed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    AnomalyStatus.RESOLVED,
    AnomalyStatus.FALSE_POSITIVE,
    AnomalyStatus.SUPPRESSED,
})


class RootCauseCategory(str, Enum):
    RESOURCE_EXHAUSTION = "resource_exhaustion"
    CONFIGURATION_ERROR = "configuration_error"
    CODE_ISSUE = "code_issue"
    INFRASTRUCTURE_PROBLEM = "infrastructure_problem"
    EXTERNAL_DEPENDENCY = "external_dependency"
    CAPACITY_LIMIT = "capacity_limit"
    DATA_QUALITY_ISSUE = "data_quality_issue"


class EvidenceType(str, Enum):
    METRIC_VALUE = "metric_value"
    LOG_ENTRY = "log_entry"
    ERROR_RATE = "error_rate"
    CORRELATION = "correlation"
    PATTERN_MATCH = "pattern_match"


class RecommendationType(str, Enum):
    IMMEDIATE_ACTION = "immediate_action"
    INVESTIGATION = "investigation"
    MONITORING = "monitoring"
    PREVENTION = "prevention"
    OPTIMIZATION = "optimization"


class RecommendationPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendedActionType(str, Enum):
    SCALE_RESOURCES = "scale_resources"
    RESTART_SERVICE = "restart_service"
    ADJUST_CONFIGURATION = "adjust_configuration"
    INVESTIGATE_LOGS = "investigate_logs"
    CONTACT_TEAM = "contact_team"
    MONITOR_METRIC = "monitor_metric"
    RUN_DIAGNOSTIC = "run_diagnostic"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DetectionModelType(str, Enum):
    STATISTICAL = "statistical"
    MACHINE_LEARNING = "machine_learning"
    RULE_BASED = "rule_based"
    ENSEMBLE = "ensemble"


class TimeWindow(BaseModel):
    start: datetime
    end: datetime
    duration: float  # seconds
    preceding_period: float


class RelatedMetric(BaseModel):
    metric_name: str
    correlation: float
    value: float
    normal_value: float
    deviation: float


class SystemState(BaseModel):
    overall_health: float  # 0-1
    active_anomalies: int = 0
    system_load: float = 0.0
    business_hours: bool = False
    hour_of_day: int = 0
    day_of_week: int = 0


class AnomalyContext(BaseModel):
    time_window: TimeWindow
    related_metrics: List[RelatedMetric] = Field(default_factory=list)
    system_state: SystemState


class Evidence(BaseModel):
    type: EvidenceType
    description: str
    value: Union[float, str]
    timestamp: datetime = Field(default_factory=utcnow)
    source: str


class ContributingFactor(BaseModel):
    factor: str
    impact: float
    description: str


class RootCause(BaseModel):
    category: RootCauseCategory
    description: str
    confidence: float
    evidence: List[Evidence] = Field(default_factory=list)
    contributing_factors: List[ContributingFactor] = Field(default_factory=list)


class UserExperienceImpact(BaseModel):
    affected_users: int
    response_time_increase: float  # ms
    error_rate_increase: float
    feature_availability: float
    satisfaction_score: float


class SystemPerformanceImpact(BaseModel):
    throughput_decrease: float
    latency_increase: float  # ms
    resource_utilization: float
    error_rate: float
    availability_impact: float


class BusinessMetricsImpact(BaseModel):
    revenue_impact: float
    conversion_rate_change: float
    customer_satisfaction_change: float
    brand_reputation_risk: float


class OperationalCostImpact(BaseModel):
    additional_resource_cost: float
    maintenance_cost: float
    opportunity_cost: float
    total_cost: float


class AnomalyImpact(BaseModel):
    user_experience: UserExperienceImpact
    system_performance: SystemPerformanceImpact
    business_metrics: BusinessMetricsImpact
    operational_cost: OperationalCostImpact


class RecommendedAction(BaseModel):
    type: RecommendedActionType
    parameters: Dict[str, Any] = Field(default_factory=dict)
    automatable: bool = False
    risk_level: RiskLevel = RiskLevel.LOW


class RecommendationImpact(BaseModel):
    resolution_time: int  # seconds
    effectiveness_score: float
    risk_mitigation: float


class AnomalyRecommendation(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    type: RecommendationType
    priority: RecommendationPriority
    title: str
    description: str
    action: RecommendedAction
    expected_impact: RecommendationImpact
    timeframe: str
    prerequisites: List[str] = Field(default_factory=list)


class Anomaly(BaseModel):
    """A detected deviation and its enrichment."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    metric_name: str
    anomaly_type: AnomalyType
    severity: AnomalySeverity
    detected_at: datetime = Field(default_factory=utcnow)
    value: float
    expected_value: float
    deviation: float
    confidence: float
    context: Optional[AnomalyContext] = None
    root_cause: Optional[RootCause] = None
    impact: Optional[AnomalyImpact] = None
    recommendations: List[AnomalyRecommendation] = Field(default_factory=list)
    status: AnomalyStatus = AnomalyStatus.ACTIVE
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None


class DetectionAccuracy(BaseModel):
    precision: float = 0.8
    recall: float = 0.8
    f1_score: float = 0.8
    false_positive_rate: float = 0.1
    false_negative_rate: float = 0.1
    last_evaluation: datetime = Field(default_factory=utcnow)


class TrainingPeriod(BaseModel):
    start: datetime
    end: datetime
    sample_count: int = 0
    data_quality: float = 0.9


class AnomalyDetectionModel(BaseModel):
    """Detection model state for one metric."""

    model_config = ConfigDict(protected_namespaces=())

    id: str = Field(default_factory=lambda: str(uuid4()))
    metric_name: str
    model_type: DetectionModelType = DetectionModelType.STATISTICAL
    parameters: Dict[str, Union[float, str, bool]] = Field(default_factory=dict)
    sensitivity: float = 0.8
    accuracy: DetectionAccuracy = Field(default_factory=DetectionAccuracy)
    training_period: TrainingPeriod
    last_updated: datetime = Field(default_factory=utcnow)
    version: int = 1


class DetectionResult(BaseModel):
    """Outcome of scoring one value against a model."""

    is_anomaly: bool
    anomaly_type: AnomalyType = AnomalyType.OUTLIER
    severity: AnomalySeverity = AnomalySeverity.LOW
    expected_value: float
    deviation: float = 0.0
    confidence: float = 0.0
    z_score: float = 0.0
    sample_count: int = 0
