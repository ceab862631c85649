"""Development environment configuration."""

from typing import List

from pydantic_settings import SettingsConfigDict

from .base import BaseConfig, Environment, LogLevel


class DevelopmentConfig(BaseConfig):
    """Development environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env.development",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Environment = Environment.DEVELOPMENT

    # Application
    debug: bool = True
    log_level: LogLevel = LogLevel.DEBUG
    enable_docs: bool = True

    # API Configuration
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
        "http://127.0.0.1:3000",
    ]

    # Generous deadline for stepping through with a debugger
    assessment_timeout_ms: int = 2000
