"""Configuration package for the risk assessment engine."""

from .base import BaseConfig, Environment, LogLevel
from .development import DevelopmentConfig
from .production import ProductionConfig
from .testing import TestingConfig
from .factory import (
    ConfigFactory,
    SettingsError,
    get_settings,
    reload_settings,
    get_config_summary
)

__all__ = [
    # Base classes
    "BaseConfig",
    "Environment",
    "LogLevel",

    # Environment-specific configs
    "DevelopmentConfig",
    "ProductionConfig",
    "TestingConfig",

    # Factory and utilities
    "ConfigFactory",
    "SettingsError",
    "get_settings",
    "reload_settings",
    "get_config_summary",
]
