"""
Configuration management with environment validation.

This module provides type-safe configuration using pydantic-settings. Every
field can be overridden through the environment (case-insensitive) or a
``.env`` file.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from predictive_optimization.core.exceptions import ConfigurationError


class StoreSettings(BaseSettings):
    """Persistent store (Redis) configuration settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    redis_url: Optional[str] = Field(None, description="Full Redis URL, overrides the parts below")
    redis_host: str = Field("localhost")
    redis_port: int = Field(6379)
    redis_db: int = Field(0)
    redis_password: Optional[SecretStr] = Field(None)

    redis_max_connections: int = Field(20)
    socket_timeout: float = Field(5.0)
    retry_attempts: int = Field(3, ge=1)

    metrics_retention_seconds: int = Field(14 * 86400, description="Raw sample retention, covers the retraining window")

    @model_validator(mode="after")
    def assemble_redis_connection(self) -> "StoreSettings":
        """Assemble the Redis URL from components if not provided."""
        if self.redis_url:
            return self

        auth = ""
        if self.redis_password:
            auth = f":{self.redis_password.get_secret_value()}@"
        self.redis_url = f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return self


class ScheduleSettings(BaseSettings):
    """Intervals, in seconds, of the periodic background loops."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    collection_interval: float = Field(30)
    detection_interval: float = Field(60)
    prediction_interval: float = Field(300)
    optimization_interval: float = Field(300)
    cost_analysis_interval: float = Field(21600)

    @field_validator(
        "collection_interval",
        "detection_interval",
        "prediction_interval",
        "optimization_interval",
        "cost_analysis_interval",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Intervals must be strictly positive."""
        if v <= 0:
            raise ValueError("Interval must be positive")
        return v


class ThresholdSettings(BaseSettings):
    """Decision thresholds shared by the optimization components."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    bottleneck_confidence: float = Field(0.7, ge=0.0, le=1.0)
    retrain_mape: float = Field(0.2, gt=0.0)
    retrain_f1: float = Field(0.7, ge=0.0, le=1.0)
    correlation_break: float = Field(0.3, ge=0.0, le=1.0)
    cost_savings_floor: float = Field(100.0, ge=0.0)
    monthly_budget: float = Field(1000.0, gt=0.0)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
    )

    # Environment Configuration
    environment: str = Field("development")
    debug: bool = Field(False)
    log_level: str = Field("INFO")
    log_file: Optional[Path] = Field(None)

    # Nested Settings
    store: StoreSettings = Field(default_factory=StoreSettings)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    thresholds: ThresholdSettings = Field(default_factory=ThresholdSettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed_environments = {"development", "staging", "production", "testing"}
        if v.lower() not in allowed_environments:
            raise ValueError(f"Environment must be one of: {allowed_environments}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level value."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"Log level must be one of: {allowed_levels}")
        return v.upper()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    def get_redis_url(self) -> str:
        """Get the Redis connection URL."""
        return str(self.store.redis_url)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()


def validate_required_settings(settings: Optional[Settings] = None) -> None:
    """
    Validate that all required settings are properly configured.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    settings = settings or get_settings()

    if not settings.store.redis_url:
        raise ConfigurationError("REDIS_URL could not be determined")

    if settings.is_production and settings.debug:
        raise ConfigurationError("Debug mode must be disabled in production")

    schedule = settings.schedule
    for name in (
        "collection_interval",
        "detection_interval",
        "prediction_interval",
        "optimization_interval",
        "cost_analysis_interval",
    ):
        if getattr(schedule, name) <= 0:
            raise ConfigurationError(f"{name.upper()} must be positive")


__all__ = [
    "Settings",
    "StoreSettings",
    "ScheduleSettings",
    "ThresholdSettings",
    "get_settings",
    "validate_required_settings",
]
