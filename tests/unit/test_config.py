"""
Unit tests for configuration management.

This module tests the configuration system including settings validation,
environment variable loading, and configuration validation.
"""

import pytest
from pydantic import ValidationError

from predictive_optimization.config.settings import (
    ScheduleSettings,
    Settings,
    StoreSettings,
    ThresholdSettings,
    validate_required_settings,
)
from predictive_optimization.core.exceptions import ConfigurationError


class TestStoreSettings:
    """Test store configuration settings."""

    def test_redis_url_assembly(self):
        """Test Redis URL assembly from components."""
        settings = StoreSettings(
            redis_host="cache.internal",
            redis_port=6380,
            redis_db=2,
        )

        assert settings.redis_url == "redis://cache.internal:6380/2"

    def test_redis_url_with_password(self):
        """Test that a password is embedded in the assembled URL."""
        settings = StoreSettings(redis_host="localhost", redis_password="s3cret")

        assert settings.redis_url.startswith("redis://:s3cret@localhost")

    def test_explicit_redis_url_wins(self):
        """Test that an explicit URL is not overwritten."""
        settings = StoreSettings(redis_url="redis://other:7000/5", redis_host="ignored")

        assert settings.redis_url == "redis://other:7000/5"

    def test_redis_url_from_environment(self, monkeypatch):
        """Test loading the URL from REDIS_URL."""
        monkeypatch.setenv("REDIS_URL", "redis://env-host:6379/1")

        assert StoreSettings().redis_url == "redis://env-host:6379/1"

    def test_default_retry_attempts(self):
        assert StoreSettings().retry_attempts == 3


class TestScheduleSettings:
    """Test loop interval settings."""

    def test_defaults(self):
        """Test default loop intervals."""
        settings = ScheduleSettings()

        assert settings.collection_interval == 30
        assert settings.detection_interval == 60
        assert settings.prediction_interval == 300
        assert settings.optimization_interval == 300
        assert settings.cost_analysis_interval == 21600

    def test_non_positive_interval_rejected(self):
        """Test that intervals must be positive."""
        with pytest.raises(ValidationError):
            ScheduleSettings(collection_interval=0)

        with pytest.raises(ValidationError):
            ScheduleSettings(optimization_interval=-5)


class TestThresholdSettings:
    """Test decision threshold settings."""

    def test_defaults(self):
        settings = ThresholdSettings()

        assert settings.bottleneck_confidence == 0.7
        assert settings.retrain_mape == 0.2
        assert settings.retrain_f1 == 0.7
        assert settings.correlation_break == 0.3
        assert settings.cost_savings_floor == 100.0
        assert settings.monthly_budget == 1000.0

    def test_confidence_bounds(self):
        """Test that confidences stay within [0, 1]."""
        with pytest.raises(ValidationError):
            ThresholdSettings(bottleneck_confidence=1.5)

    def test_budget_must_be_positive(self):
        with pytest.raises(ValidationError):
            ThresholdSettings(monthly_budget=0)


class TestMainSettings:
    """Test main application settings."""

    def test_environment_validation(self):
        """Test environment validation."""
        for env in ["development", "staging", "production", "testing"]:
            settings = Settings(environment=env)
            assert settings.environment == env

        with pytest.raises(ValidationError):
            Settings(environment="invalid")

    def test_environment_is_normalized(self):
        assert Settings(environment="PRODUCTION").environment == "production"

    def test_log_level_validation(self):
        """Test log level validation."""
        for level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            settings = Settings(log_level=level)
            assert settings.log_level == level

        assert Settings(log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValidationError):
            Settings(log_level="INVALID")

    def test_environment_properties(self):
        """Test environment property methods."""
        assert Settings(environment="production").is_production
        assert not Settings(environment="development").is_production

    def test_redis_url_helper(self):
        settings = Settings(store=StoreSettings(redis_url="redis://helper:6379/0"))

        assert settings.get_redis_url() == "redis://helper:6379/0"

    def test_settings_fixture(self, test_settings):
        """Test settings loaded from the environment."""
        assert test_settings.environment == "testing"
        assert test_settings.debug is True
        assert test_settings.log_level == "DEBUG"


class TestSettingsValidation:
    """Test settings validation functions."""

    def test_validate_required_settings_development(self):
        """Test validation in development environment."""
        validate_required_settings(Settings(environment="development"))

    def test_production_with_debug_fails(self):
        """Test that production refuses debug mode."""
        settings = Settings(environment="production", debug=True)

        with pytest.raises(ConfigurationError, match="Debug mode"):
            validate_required_settings(settings)

    def test_validate_uses_cached_settings(self, test_settings):
        """Test validation of the cached settings instance."""
        validate_required_settings()
