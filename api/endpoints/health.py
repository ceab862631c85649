"""Health check and metrics endpoints."""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field

from config import BaseConfig
from monitoring import metrics
from risk_engine.engine import RiskAssessmentEngine
from api.dependencies import get_app_settings, get_engine

logger = logging.getLogger(__name__)

router = APIRouter()

_started_at = time.time()


class HealthStatus(BaseModel):
    """Health status response model."""

    status: str = Field(..., description="Overall health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Deployment environment")
    uptime_seconds: float = Field(..., description="Application uptime in seconds")
    engine: Dict[str, Any] = Field(default_factory=dict, description="Risk engine statistics")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "version": "1.0.0",
                "environment": "production",
                "uptime_seconds": 3600.5,
                "engine": {"patterns": 3, "active_patterns": 3, "known_devices": 120}
            }
        }
    )


@router.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check(
    engine: RiskAssessmentEngine = Depends(get_engine),
    settings: BaseConfig = Depends(get_app_settings)
) -> HealthStatus:
    """Basic health check with engine statistics."""
    return HealthStatus(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=settings.app_version,
        environment=settings.environment.value,
        uptime_seconds=round(time.time() - _started_at, 3),
        engine=engine.get_engine_stats(),
    )


@router.get("/metrics", include_in_schema=False)
async def prometheus_metrics() -> Response:
    """Prometheus scrape endpoint."""
    content, content_type = metrics.render_latest()
    return Response(content=content, media_type=content_type)
