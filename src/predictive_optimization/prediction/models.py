"""
Prediction data models.

Pydantic records for forecasting models, point predictions and bottleneck
predictions, with the enumerations they are tagged by.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from predictive_optimization.core.timeutil import utcnow


class PredictionType(str, Enum):
    RESOURCE_USAGE = "resource_usage"
    PERFORMANCE_DEGRADATION = "performance_degradation"
    CAPACITY_LIMIT = "capacity_limit"
    ANOMALY_DETECTION = "anomaly_detection"
    COST_PROJECTION = "cost_projection"


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    VOLATILE = "volatile"
    CYCLICAL = "cyclical"


class ModelType(str, Enum):
    LINEAR_REGRESSION = "linear_regression"
    ARIMA = "arima"
    EXPONENTIAL_SMOOTHING = "exponential_smoothing"
    NEURAL_NETWORK = "neural_network"
    ENSEMBLE = "ensemble"


class ResourceType(str, Enum):
    CPU = "cpu"
    MEMORY = "memory"
    REDIS_MEMORY = "redis_memory"
    NETWORK_BANDWIDTH = "network_bandwidth"
    DISK_IO = "disk_io"
    CONNECTION_POOL = "connection_pool"
    QUEUE_CAPACITY = "queue_capacity"


class BottleneckSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ImpactLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MitigationType(str, Enum):
    SCALE_UP = "scale_up"
    SCALE_OUT = "scale_out"
    OPTIMIZE_CONFIG = "optimize_config"
    CACHE_WARMING = "cache_warming"
    LOAD_BALANCING = "load_balancing"
    RESOURCE_REALLOCATION = "resource_reallocation"
    THROTTLING = "throttling"


class SeasonalityPattern(BaseModel):
    detected: bool = False
    period: float = 0.0  # seconds
    amplitude: float = 0.0
    phase: float = 0.0
    confidence: float = 0.0


class PredictionFactor(BaseModel):
    name: str
    impact: float  # -1 to 1
    confidence: float
    description: str


class PerformancePrediction(BaseModel):
    """Immutable result of one forecast."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    metric_name: str
    prediction_type: PredictionType = PredictionType.RESOURCE_USAGE
    time_horizon: int  # seconds
    predicted_value: float
    confidence: float
    trend: TrendDirection = TrendDirection.STABLE
    seasonality: SeasonalityPattern = Field(default_factory=SeasonalityPattern)
    anomaly_score: float = 0.0
    factors: List[PredictionFactor] = Field(default_factory=list)
    sample_count: int = 0
    generated_at: datetime = Field(default_factory=utcnow)
    valid_until: datetime

    model_config = ConfigDict(frozen=True)

    @property
    def is_actionable(self) -> bool:
        return self.confidence > 0

    def is_valid(self, at: datetime) -> bool:
        return self.valid_until > at


class ModelAccuracy(BaseModel):
    mape: float = 0.15
    rmse: float = 0.0
    mae: float = 0.0
    r2: float = 0.0
    last_validation: datetime = Field(default_factory=utcnow)
    validation_samples: int = 0


class TrainingData(BaseModel):
    start_time: datetime
    end_time: datetime
    sample_count: int = 0
    data_quality: float = 0.0
    missing_values: int = 0
    outliers: int = 0


class PredictionModel(BaseModel):
    """Forecasting model state for one metric."""

    model_config = ConfigDict(protected_namespaces=())

    id: str = Field(default_factory=lambda: str(uuid4()))
    metric_name: str
    model_type: ModelType = ModelType.EXPONENTIAL_SMOOTHING
    parameters: Dict[str, Union[float, str, bool]] = Field(default_factory=dict)
    accuracy: ModelAccuracy = Field(default_factory=ModelAccuracy)
    training_data: TrainingData
    last_updated: datetime = Field(default_factory=utcnow)
    version: int = 1


class BottleneckImpact(BaseModel):
    affected_services: List[str] = Field(default_factory=list)
    performance_degradation: float = 0.0
    user_impact: ImpactLevel = ImpactLevel.NONE
    business_impact: ImpactLevel = ImpactLevel.NONE
    estimated_cost: float = 0.0


class MitigationStrategy(BaseModel):
    id: str
    name: str
    description: str
    type: MitigationType
    effectiveness: float
    cost: float
    implementation_time: int  # seconds
    prerequisites: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)


class BottleneckPrediction(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    resource_type: ResourceType
    metric_name: str
    severity: BottleneckSeverity
    predicted_value: float
    threshold: float
    estimated_time: datetime
    duration: float  # seconds
    impact: BottleneckImpact
    mitigation: List[MitigationStrategy] = Field(default_factory=list)
    confidence: float
    generated_at: datetime = Field(default_factory=utcnow)
