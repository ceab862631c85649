"""FastAPI application for the risk assessment engine.

This module sets up the FastAPI application with:
- API routing and endpoints
- Middleware configuration
- Exception handling
- Application lifecycle events
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from config import BaseConfig, get_config_summary, get_settings
from config.logging import initialize_logging
from risk_engine.engine import RiskAssessmentEngine, create_risk_engine
from .endpoints import admin_router, assessment_router, health_router
from .exceptions import setup_exception_handlers
from .middleware import setup_middleware

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Initializes logging and, unless one was supplied, the risk engine.
    """
    settings: BaseConfig = app.state.settings
    audit_logger = initialize_logging(settings)
    logger.info("Starting risk engine API service", extra={"config": get_config_summary(settings)})

    if app.state.risk_engine is None:
        try:
            app.state.risk_engine = create_risk_engine(settings, audit_logger=audit_logger)
        except Exception as e:
            logger.error(f"Failed to start risk engine API service: {e}")
            raise

    logger.info("Risk engine API service started successfully")

    yield

    await app.state.risk_engine.alert_manager.drain(timeout=settings.alert_webhook_timeout)
    logger.info("Risk engine API service shut down")


def create_app(settings: Optional[BaseConfig] = None,
               engine: Optional[RiskAssessmentEngine] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Application settings; uses current settings if None
        engine: Pre-built risk engine; built during startup if None

    Returns:
        FastAPI application
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="P2P Risk Engine API",
        description="Real-time transaction risk assessment for peer-to-peer payments",
        version=settings.app_version,
        docs_url="/docs" if settings.enable_docs else None,
        redoc_url="/redoc" if settings.enable_docs else None,
        openapi_url="/openapi.json" if settings.enable_docs else None,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.risk_engine = engine

    setup_exception_handlers(app)
    setup_middleware(app, settings)

    app.include_router(health_router)
    app.include_router(assessment_router, prefix=API_PREFIX)
    app.include_router(admin_router, prefix=API_PREFIX)

    return app
