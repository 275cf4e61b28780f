"""
Cost optimization data models.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from predictive_optimization.core.timeutil import utcnow

from .models import RiskSeverity


class CostResourceType(str, Enum):
    CPU = "cpu"
    MEMORY = "memory"
    REDIS_MEMORY = "redis_memory"
    NETWORK_BANDWIDTH = "network_bandwidth"
    DISK_STORAGE = "disk_storage"
    CONNECTION_POOL = "connection_pool"
    QUEUE_CAPACITY = "queue_capacity"


class CostOptimizationType(str, Enum):
    RIGHT_SIZING = "right_sizing"
    RESERVED_INSTANCES = "reserved_instances"
    SPOT_INSTANCES = "spot_instances"
    AUTO_SCALING = "auto_scaling"
    RESOURCE_SCHEDULING = "resource_scheduling"
    DATA_LIFECYCLE = "data_lifecycle"
    COMPRESSION = "compression"
    CACHING_OPTIMIZATION = "caching_optimization"
    NETWORK_OPTIMIZATION = "network_optimization"


class CostOptimizationStatus(str, Enum):
    IDENTIFIED = "identified"
    ANALYZED = "analyzed"
    APPROVED = "approved"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CostPeriod(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class CostRiskType(str, Enum):
    PERFORMANCE_DEGRADATION = "performance_degradation"
    SERVICE_INTERRUPTION = "service_interruption"
    DATA_LOSS = "data_loss"
    VENDOR_LOCK_IN = "vendor_lock_in"
    COMPLIANCE_VIOLATION = "compliance_violation"
    HIDDEN_COSTS = "hidden_costs"


class ResourceRequirementType(str, Enum):
    ENGINEER_TIME = "engineer_time"
    ADMIN_TIME = "admin_time"
    CONSULTANT = "consultant"
    TOOLS = "tools"
    INFRASTRUCTURE = "infrastructure"


class EffortLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class CostTrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    VOLATILE = "volatile"


class CostAlertType(str, Enum):
    BUDGET_EXCEEDED = "budget_exceeded"
    BUDGET_FORECAST_EXCEEDED = "budget_forecast_exceeded"
    UNUSUAL_SPENDING = "unusual_spending"
    COST_SPIKE = "cost_spike"
    INEFFICIENT_RESOURCE_USAGE = "inefficient_resource_usage"


class CostAlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class CostBreakdown(BaseModel):
    compute: float = 0.0
    memory: float = 0.0
    storage: float = 0.0
    network: float = 0.0
    licensing: float = 0.0
    support: float = 0.0
    total: float = 0.0
    currency: str = "USD"
    period: CostPeriod = CostPeriod.MONTHLY


class CostSavings(BaseModel):
    amount: float
    percentage: float
    currency: str = "USD"
    period: CostPeriod = CostPeriod.MONTHLY
    payback_period: float  # months
    roi: float  # percent
    net_present_value: float


class ImplementationPhase(BaseModel):
    id: str
    name: str
    description: str
    duration: float  # days
    cost: float
    risks: List[str] = Field(default_factory=list)
    deliverables: List[str] = Field(default_factory=list)
    prerequisites: List[str] = Field(default_factory=list)


class RequiredResource(BaseModel):
    type: ResourceRequirementType
    quantity: float
    duration: float  # days
    cost: float


class RollbackStep(BaseModel):
    id: str
    description: str
    estimated_time: float  # minutes
    prerequisites: List[str] = Field(default_factory=list)


class RollbackPlan(BaseModel):
    steps: List[RollbackStep] = Field(default_factory=list)
    estimated_time: float  # hours
    data_backup_required: bool = False
    risk_level: RiskSeverity = RiskSeverity.LOW


class ImplementationPlan(BaseModel):
    phases: List[ImplementationPhase] = Field(default_factory=list)
    total_duration: float  # days
    required_resources: List[RequiredResource] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)
    rollback_plan: RollbackPlan

    @property
    def total_cost(self) -> float:
        return sum(phase.cost for phase in self.phases)


class RiskImpact(BaseModel):
    financial: float = 0.0
    operational: str = ""
    reputation: str = ""
    compliance: str = "None"


class CostRisk(BaseModel):
    type: CostRiskType
    severity: RiskSeverity
    probability: float
    description: str
    impact: RiskImpact = Field(default_factory=RiskImpact)
    mitigation: str


class CostPerformanceImpact(BaseModel):
    latency_change: float = 0.0  # ms
    throughput_change: float = 0.0  # percent
    availability_change: float = 0.0
    error_rate_change: float = 0.0


class CostOptimizationResult(BaseModel):
    optimization_id: str
    success: bool
    actual_savings: CostSavings
    performance_impact: CostPerformanceImpact = Field(default_factory=CostPerformanceImpact)
    implementation_cost: float = 0.0
    execution_time: float = 0.0
    rollback_required: bool = False
    errors: List[str] = Field(default_factory=list)
    lessons_learned: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class CostOptimization(BaseModel):
    """A proposed cost-saving change with before/after costs and a plan."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: CostOptimizationType
    resource_type: CostResourceType
    description: str
    current_cost: CostBreakdown
    optimized_cost: CostBreakdown
    savings: CostSavings
    implementation: ImplementationPlan
    risks: List[CostRisk] = Field(default_factory=list)
    status: CostOptimizationStatus = CostOptimizationStatus.ANALYZED
    created_at: datetime = Field(default_factory=utcnow)
    implemented_at: Optional[datetime] = None
    result: Optional[CostOptimizationResult] = None


class ResourceUsage(BaseModel):
    utilization: float
    allocated: Optional[float] = None
    used: Optional[float] = None
    unit: str = ""


class CostDataPoint(BaseModel):
    date: datetime
    cost: float
    confidence: float = 0.9


class TrendFactor(BaseModel):
    name: str
    impact: float
    confidence: float
    description: str


class CostTrend(BaseModel):
    direction: CostTrendDirection = CostTrendDirection.STABLE
    rate: float = 0.0  # percent per month
    factors: List[TrendFactor] = Field(default_factory=list)


class CostScenario(BaseModel):
    name: str
    description: str
    probability: float
    cost_impact: float
    timeline: List[CostDataPoint] = Field(default_factory=list)


class CostProjection(BaseModel):
    timeline: List[CostDataPoint] = Field(default_factory=list)
    scenarios: List[CostScenario] = Field(default_factory=list)
    assumptions: List[str] = Field(default_factory=list)


class OptimizationOpportunity(BaseModel):
    type: CostOptimizationType
    potential_savings: float
    confidence: float
    effort: EffortLevel
    timeframe: str


class CostForecast(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    resource_type: CostResourceType
    time_horizon: int  # days
    current_trend: CostTrend
    projected_cost: CostProjection
    optimization_opportunities: List[OptimizationOpportunity] = Field(default_factory=list)
    confidence: float
    sample_count: int = 0
    generated_at: datetime = Field(default_factory=utcnow)


class CostThreshold(BaseModel):
    value: float
    period: CostPeriod = CostPeriod.MONTHLY


class CostAlert(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    type: CostAlertType
    resource_type: CostResourceType
    severity: CostAlertSeverity
    threshold: CostThreshold
    current_value: float
    projected_value: float
    message: str = ""
    timeframe: str
    recommendations: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
