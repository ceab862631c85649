"""Configuration factory for environment-specific settings."""

import os
import logging
from typing import Type, Dict, Any, Optional
from functools import lru_cache

from pydantic import ValidationError
from pydantic_settings import SettingsError as SourceParsingError

from .base import BaseConfig, Environment
from .development import DevelopmentConfig
from .production import ProductionConfig
from .testing import TestingConfig

logger = logging.getLogger(__name__)


class SettingsError(Exception):
    """Settings could not be loaded or failed validation."""
    pass


class ConfigFactory:
    """Factory for creating environment-specific configurations."""

    _config_map: Dict[Environment, Type[BaseConfig]] = {
        Environment.DEVELOPMENT: DevelopmentConfig,
        Environment.PRODUCTION: ProductionConfig,
        Environment.TESTING: TestingConfig,
    }

    @classmethod
    def get_config_class(cls, environment: Environment) -> Type[BaseConfig]:
        """Get configuration class for the specified environment.

        Args:
            environment: Target environment

        Returns:
            Configuration class for the environment

        Raises:
            SettingsError: If environment is not supported
        """
        if environment not in cls._config_map:
            raise SettingsError(f"Unsupported environment: {environment}")

        return cls._config_map[environment]

    @classmethod
    def create_config(cls, environment: Optional[Environment] = None) -> BaseConfig:
        """Create configuration instance for the specified environment.

        Args:
            environment: Target environment. If None, will be determined from
                        ENVIRONMENT environment variable or default to development.

        Returns:
            Configuration instance

        Raises:
            SettingsError: If configuration creation fails
        """
        if environment is None:
            env_str = os.getenv("ENVIRONMENT", "development").lower()
            try:
                environment = Environment(env_str)
            except ValueError:
                logger.warning(f"Invalid environment '{env_str}', defaulting to development")
                environment = Environment.DEVELOPMENT

        config_class = cls.get_config_class(environment)
        try:
            config = config_class(environment=environment)
        except (ValidationError, SourceParsingError) as e:
            raise SettingsError(f"Failed to create {environment.value} configuration: {e}") from e

        cls._validate_risk_settings(config)
        if environment == Environment.PRODUCTION:
            cls._validate_production_config(config)

        logger.info(f"Loaded {environment.value} configuration")
        return config

    @classmethod
    def _validate_risk_settings(cls, config: BaseConfig) -> None:
        """Validate cross-field constraints on the risk engine tunables.

        Args:
            config: Configuration to validate

        Raises:
            SettingsError: If validation fails
        """
        if config.night_start_hour > config.night_end_hour:
            raise SettingsError(
                f"night_start_hour ({config.night_start_hour}) must not exceed "
                f"night_end_hour ({config.night_end_hour})"
            )

    @classmethod
    def _validate_production_config(cls, config: BaseConfig) -> None:
        """Validate production configuration for safety.

        Args:
            config: Configuration to validate

        Raises:
            SettingsError: If validation fails
        """
        if config.debug:
            raise SettingsError("Debug mode must be disabled in production")

        if config.enable_docs:
            logger.warning("API documentation is enabled in production - consider disabling for security")

        if "*" in config.cors_origins:
            raise SettingsError("CORS origins must be explicitly set in production (no wildcards)")

        if config.alert_webhook_url and not config.alert_webhook_url.startswith("https://"):
            raise SettingsError("Alert webhook must use https in production")

        logger.info("Production configuration validation passed")


@lru_cache(maxsize=1)
def get_settings() -> BaseConfig:
    """Get cached application settings.

    Returns:
        Application configuration instance
    """
    return ConfigFactory.create_config()


def reload_settings() -> BaseConfig:
    """Reload settings by clearing cache and creating new instance.

    Returns:
        New configuration instance
    """
    get_settings.cache_clear()
    return get_settings()


def get_config_summary(config: Optional[BaseConfig] = None) -> Dict[str, Any]:
    """Get a summary of current configuration (safe for logging).

    Args:
        config: Configuration instance. If None, uses current settings.

    Returns:
        Dictionary with configuration summary (sensitive data masked)
    """
    if config is None:
        config = get_settings()

    summary = {
        "environment": config.environment.value,
        "app_name": config.app_name,
        "app_version": config.app_version,
        "debug": config.debug,
        "log_level": config.log_level.value,
        "api_host": config.api_host,
        "api_port": config.api_port,
        "enable_metrics": config.enable_metrics,
        "assessment_timeout_ms": config.assessment_timeout_ms,
        "device_risk_threshold": config.device_risk_threshold,
        "velocity_cutoff": config.velocity_cutoff,
    }

    webhook = config.alert_webhook_url
    if webhook:
        summary["alert_webhook_url_masked"] = f"{webhook[:12]}***" if len(webhook) > 12 else "***"

    return summary
