"""Production environment configuration."""

from typing import List

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from .base import BaseConfig, Environment, LogLevel


class ProductionConfig(BaseConfig):
    """Production environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env.production",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Environment = Environment.PRODUCTION

    # Application
    debug: bool = False
    log_level: LogLevel = Field(default=LogLevel.INFO)
    enable_docs: bool = False

    # API Configuration
    api_workers: int = Field(default=4)
    cors_origins: List[str] = Field(default=[])

    # Monitoring Configuration (Full monitoring in production)
    enable_metrics: bool = True

    # Payment pipeline latency budget
    assessment_timeout_ms: int = Field(default=150, gt=0)
