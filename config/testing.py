"""Testing environment configuration."""

from typing import List

from pydantic_settings import SettingsConfigDict

from .base import BaseConfig, Environment, LogLevel


class TestingConfig(BaseConfig):
    """Testing environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env.testing",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Environment = Environment.TESTING

    # Application
    debug: bool = True
    log_level: LogLevel = LogLevel.DEBUG
    enable_docs: bool = False  # Disable docs during testing

    # API Configuration
    api_host: str = "127.0.0.1"
    api_port: int = 8001  # Different port to avoid conflicts
    cors_origins: List[str] = ["*"]

    # Monitoring Configuration (Disabled for testing)
    enable_metrics: bool = False

    assessment_timeout_ms: int = 1000
