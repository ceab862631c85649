"""Base configuration settings for the risk assessment engine."""

from typing import List, Optional
from enum import Enum
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment types."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class BaseConfig(BaseSettings):
    """Base configuration settings shared across all environments."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Environment = Field(default=Environment.DEVELOPMENT)

    # Application
    app_name: str = "P2P Risk Engine"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False)
    log_level: LogLevel = Field(default=LogLevel.INFO)
    enable_docs: bool = Field(default=True)

    # API Configuration
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_workers: int = Field(default=1)
    enable_cors: bool = Field(default=True)
    cors_origins: List[str] = Field(default=["*"])

    # Monitoring Configuration
    enable_metrics: bool = Field(default=True)

    # Assessment deadline
    assessment_timeout_ms: int = Field(default=250, gt=0)

    # Amount factor
    amount_ratio_threshold: float = Field(default=1.5, gt=1.0)
    amount_impact_per_ratio: float = Field(default=25.0, gt=0)
    amount_weight: float = Field(default=0.7, ge=0.0, le=1.0)

    # Velocity factor
    velocity_cutoff: int = Field(default=5, ge=0)
    velocity_impact_per_txn: float = Field(default=10.0, gt=0)
    velocity_weight: float = Field(default=0.6, ge=0.0, le=1.0)

    # Location factor
    location_impact: float = Field(default=60.0, ge=0.0, le=100.0)
    location_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    location_jump_km: float = Field(default=1000.0, gt=0)
    location_jump_impact: float = Field(default=70.0, ge=0.0, le=100.0)
    location_jump_weight: float = Field(default=0.6, ge=0.0, le=1.0)

    # Network factor
    anonymizer_impact: float = Field(default=50.0, ge=0.0, le=100.0)
    anonymizer_weight: float = Field(default=0.4, ge=0.0, le=1.0)

    # Device factor
    device_risk_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    device_weight: float = Field(default=0.8, ge=0.0, le=1.0)
    device_dormant_days: int = Field(default=30, gt=0)

    # Temporal factor
    night_start_hour: float = Field(default=6.0, ge=0.0, le=24.0)
    night_end_hour: float = Field(default=22.0, ge=0.0, le=24.0)
    temporal_impact: float = Field(default=40.0, ge=0.0, le=100.0)
    temporal_weight: float = Field(default=0.3, ge=0.0, le=1.0)

    # Analytics
    flagged_score_threshold: float = Field(default=30.0, ge=0.0, le=100.0)

    # Alert notifications
    alert_webhook_url: Optional[str] = Field(default=None)
    alert_webhook_timeout: int = Field(default=10)
    alert_history_limit: int = Field(default=10000, gt=0)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("alert_webhook_url", mode="before")
    @classmethod
    def blank_webhook_is_none(cls, v):
        """Treat an empty webhook URL as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING
