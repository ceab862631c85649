"""Unit tests for the configuration system."""

import logging

import pytest

from config import (
    ConfigFactory,
    DevelopmentConfig,
    Environment,
    ProductionConfig,
    SettingsError,
    TestingConfig,
    get_config_summary,
    get_settings,
    reload_settings,
)
from config.logging import AuditLogger, initialize_logging, setup_logging


class TestConfigFactory:
    """Test suite for environment-specific configuration."""

    @pytest.mark.parametrize("environment,config_class", [
        (Environment.DEVELOPMENT, DevelopmentConfig),
        (Environment.PRODUCTION, ProductionConfig),
        (Environment.TESTING, TestingConfig),
    ])
    def test_config_class_per_environment(self, environment, config_class):
        assert ConfigFactory.get_config_class(environment) is config_class

    def test_environment_variable_selects_config(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "testing")

        config = ConfigFactory.create_config()

        assert isinstance(config, TestingConfig)
        assert config.is_testing()

    def test_unknown_environment_defaults_to_development(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "qa")
        assert ConfigFactory.create_config().is_development()

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("VELOCITY_CUTOFF", "3")
        monkeypatch.setenv("CORS_ORIGINS", '["https://a.example", "https://b.example"]')

        config = ConfigFactory.create_config(Environment.TESTING)

        assert config.velocity_cutoff == 3
        assert config.cors_origins == ["https://a.example", "https://b.example"]

    def test_invalid_value_raises_settings_error(self, monkeypatch):
        monkeypatch.setenv("DEVICE_WEIGHT", "1.5")

        with pytest.raises(SettingsError):
            ConfigFactory.create_config(Environment.TESTING)

    def test_night_window_must_be_ordered(self, monkeypatch):
        monkeypatch.setenv("NIGHT_START_HOUR", "23")
        monkeypatch.setenv("NIGHT_END_HOUR", "5")

        with pytest.raises(SettingsError):
            ConfigFactory.create_config(Environment.TESTING)

    def test_cached_settings(self):
        reload_settings()
        assert get_settings() is get_settings()


class TestProductionValidation:
    """Test suite for production safety checks."""

    def test_production_defaults_are_valid(self):
        config = ConfigFactory.create_config(Environment.PRODUCTION)

        assert config.is_production()
        assert config.debug is False
        assert config.assessment_timeout_ms == 150

    def test_debug_is_rejected(self, monkeypatch):
        monkeypatch.setenv("DEBUG", "true")

        with pytest.raises(SettingsError):
            ConfigFactory.create_config(Environment.PRODUCTION)

    def test_wildcard_cors_is_rejected(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", "*")

        with pytest.raises(SettingsError):
            ConfigFactory.create_config(Environment.PRODUCTION)

    def test_plain_http_webhook_is_rejected(self, monkeypatch):
        monkeypatch.setenv("ALERT_WEBHOOK_URL", "http://hooks.example.com/risk")

        with pytest.raises(SettingsError):
            ConfigFactory.create_config(Environment.PRODUCTION)


class TestConfigSummary:
    """Test suite for the loggable configuration summary."""

    def test_summary_fields(self):
        summary = get_config_summary(TestingConfig())

        assert summary["environment"] == "testing"
        assert summary["enable_metrics"] is False
        assert summary["assessment_timeout_ms"] == 1000
        assert "alert_webhook_url_masked" not in summary

    def test_webhook_is_masked(self):
        config = TestingConfig(alert_webhook_url="https://hooks.example.com/secret-token")

        summary = get_config_summary(config)

        assert summary["alert_webhook_url_masked"] == "https://hook***"
        assert "secret-token" not in str(summary)

    def test_blank_webhook_is_unset(self):
        assert TestingConfig(alert_webhook_url="  ").alert_webhook_url is None


class TestLoggingConfig:
    """Test suite for logging setup."""

    def test_plain_formatter_outside_production(self):
        config = setup_logging(TestingConfig())

        assert config["handlers"]["console"]["formatter"] == "simple"
        assert config["loggers"][""]["level"] == logging.DEBUG

    def test_json_formatter_in_production(self):
        config = setup_logging(ProductionConfig(environment=Environment.PRODUCTION))

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["formatters"]["json"]["environment"] == "production"

    def test_initialize_returns_audit_logger(self, settings):
        audit = initialize_logging(settings)

        assert isinstance(audit, AuditLogger)
        assert audit.logger.name == "audit"
        assert audit.logger.propagate is False
