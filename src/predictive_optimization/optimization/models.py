"""
Resource optimization data models.

Action parameters are tagged variants: each ``OptimizationActionType`` has
its own parameter model and the union is discriminated by ``type``.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from predictive_optimization.core.timeutil import utcnow
from predictive_optimization.prediction.models import ResourceType


class OptimizationActionType(str, Enum):
    SCALE_RESOURCES = "scale_resources"
    ADJUST_CACHE_CONFIG = "adjust_cache_config"
    OPTIMIZE_CONNECTION_POOL = "optimize_connection_pool"
    TUNE_VECTOR_INDEX = "tune_vector_index"
    ADJUST_SEARCH_PARAMS = "adjust_search_params"
    REBALANCE_LOAD = "rebalance_load"
    ENABLE_COMPRESSION = "enable_compression"
    ADJUST_TTL_POLICIES = "adjust_ttl_policies"
    OPTIMIZE_QUERY_PATTERNS = "optimize_query_patterns"


class OptimizationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class ComplexityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskType(str, Enum):
    PERFORMANCE_DEGRADATION = "performance_degradation"
    DATA_LOSS = "data_loss"
    SERVICE_INTERRUPTION = "service_interruption"
    CONFIGURATION_CORRUPTION = "configuration_corruption"
    RESOURCE_EXHAUSTION = "resource_exhaustion"


class RiskSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def is_high(self) -> bool:
        return self in (RiskSeverity.HIGH, RiskSeverity.CRITICAL)


class ComparisonOperator(str, Enum):
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    EQ = "eq"

    def holds(self, value: float, threshold: float) -> bool:
        if self is ComparisonOperator.GT:
            return value > threshold
        if self is ComparisonOperator.LT:
            return value < threshold
        if self is ComparisonOperator.GTE:
            return value >= threshold
        if self is ComparisonOperator.LTE:
            return value <= threshold
        return value == threshold


ConfigValue = Union[bool, int, float, str]


# Action parameter variants

class _ActionParameters(BaseModel):
    def settings(self) -> Dict[str, ConfigValue]:
        """Configuration entries this action writes when applied."""
        return self.model_dump(exclude={"type"}, exclude_none=True, mode="json")


class ScaleResourcesParameters(_ActionParameters):
    type: Literal["scale_resources"] = "scale_resources"
    scale_factor: float = 1.5
    target_utilization: Optional[float] = None
    resource: Optional[str] = None


class CacheConfigParameters(_ActionParameters):
    type: Literal["adjust_cache_config"] = "adjust_cache_config"
    eviction_policy: str = "allkeys-lru"
    max_memory_ratio: Optional[float] = None


class ConnectionPoolParameters(_ActionParameters):
    type: Literal["optimize_connection_pool"] = "optimize_connection_pool"
    max_connections: int = 1200
    min_connections: Optional[int] = None
    idle_timeout: int = 300


class VectorIndexParameters(_ActionParameters):
    type: Literal["tune_vector_index"] = "tune_vector_index"
    ef_construction: int = 200
    m: int = 16


class SearchParameters(_ActionParameters):
    type: Literal["adjust_search_params"] = "adjust_search_params"
    top_k: int = 10
    similarity_threshold: float = 0.7


class RebalanceParameters(_ActionParameters):
    type: Literal["rebalance_load"] = "rebalance_load"
    strategy: str = "least_connections"


class CompressionParameters(_ActionParameters):
    type: Literal["enable_compression"] = "enable_compression"
    compression_level: int = 6
    min_size: Optional[int] = None


class TTLPolicyParameters(_ActionParameters):
    type: Literal["adjust_ttl_policies"] = "adjust_ttl_policies"
    reduce_ttl: Optional[float] = None
    default_ttl: Optional[int] = None
    max_ttl: Optional[int] = None
    compression_threshold: Optional[int] = None


class QueryPatternParameters(_ActionParameters):
    type: Literal["optimize_query_patterns"] = "optimize_query_patterns"
    enable_caching: bool = True


ActionParameters = Annotated[
    Union[
        ScaleResourcesParameters,
        CacheConfigParameters,
        ConnectionPoolParameters,
        VectorIndexParameters,
        SearchParameters,
        RebalanceParameters,
        CompressionParameters,
        TTLPolicyParameters,
        QueryPatternParameters,
    ],
    Field(discriminator="type"),
]


# Impact, cost and risk

class ExpectedImpact(BaseModel):
    performance_improvement: float = 0.0  # 0-1
    resource_savings: float = 0.0
    latency_reduction: float = 0.0  # ms
    throughput_increase: float = 0.0  # req/s
    cost_reduction: float = 0.0  # $/month
    confidence: float = 0.5


class OptimizationCost(BaseModel):
    implementation: float = 0.0
    ongoing: float = 0.0
    downtime: float = 0.0  # seconds
    complexity: ComplexityLevel = ComplexityLevel.LOW


class OptimizationRisk(BaseModel):
    type: RiskType
    severity: RiskSeverity
    probability: float
    description: str
    mitigation: str


class ActualImpact(BaseModel):
    performance_change: float = 0.0
    resource_change: float = 0.0
    latency_change: float = 0.0  # negative is an improvement
    throughput_change: float = 0.0
    cost_change: float = 0.0


class OptimizationResult(BaseModel):
    action_id: str
    resource_id: str
    success: bool
    actual_impact: ActualImpact = Field(default_factory=ActualImpact)
    execution_time: float = 0.0
    errors: List[str] = Field(default_factory=list)
    rollback_required: bool = False
    rollback_reason: Optional[str] = None
    previous_config: Dict[str, ConfigValue] = Field(default_factory=dict)
    rolled_back: bool = False
    completed_at: datetime = Field(default_factory=utcnow)


class OptimizationAction(BaseModel):
    """A single proposed change to one resource."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: OptimizationActionType
    resource_type: ResourceType
    description: str
    parameters: ActionParameters
    expected_impact: ExpectedImpact
    cost: OptimizationCost
    risks: List[OptimizationRisk] = Field(default_factory=list)
    prerequisites: List[str] = Field(default_factory=list)
    status: OptimizationStatus = OptimizationStatus.PENDING
    strategy_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    executed_at: Optional[datetime] = None
    result: Optional[OptimizationResult] = None

    @model_validator(mode="after")
    def _parameters_match_type(self) -> "OptimizationAction":
        if self.parameters.type != self.type.value:
            raise ValueError(f"parameters for {self.parameters.type} do not match action type {self.type.value}")
        return self


# Resource configuration

class ConfigurationChange(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)
    parameter: str
    old_value: Optional[ConfigValue] = None
    new_value: Optional[ConfigValue] = None
    reason: str
    action_id: Optional[str] = None


class ResourceConfiguration(BaseModel):
    resource_id: str
    resource_type: ResourceType
    current_config: Dict[str, ConfigValue] = Field(default_factory=dict)
    history: List[ConfigurationChange] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)


# Strategies

class StrategyCondition(BaseModel):
    metric: str
    operator: ComparisonOperator = ComparisonOperator.GT
    threshold: float
    duration: int = 0  # seconds


class ActionTemplate(BaseModel):
    parameters: ActionParameters

    @property
    def type(self) -> OptimizationActionType:
        return OptimizationActionType(self.parameters.type)


class OptimizationStrategy(BaseModel):
    """Declarative rule turning a metric condition into action templates."""

    id: str
    name: str
    description: str = ""
    applicable_resources: List[ResourceType] = Field(default_factory=list)
    conditions: List[StrategyCondition] = Field(default_factory=list)
    actions: List[ActionTemplate] = Field(default_factory=list)
    priority: int = 5
    enabled: bool = True


# Execution

class ExecutionOutcome(BaseModel):
    """What an executor reports back for one action or cost optimization."""

    success: bool
    variance: float = 1.0
    execution_time: float = 0.0
    error: Optional[str] = None
