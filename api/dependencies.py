"""API dependencies for the risk engine service.

This module provides dependency injection for:
- The risk assessment engine bound to the application
- Application settings
"""

import logging

from fastapi import HTTPException, Request, status

from config import BaseConfig, get_settings
from risk_engine.engine import RiskAssessmentEngine

logger = logging.getLogger(__name__)


def get_engine(request: Request) -> RiskAssessmentEngine:
    """Get the risk engine bound to the running application.

    Returns:
        Risk assessment engine

    Raises:
        HTTPException: If the engine has not been initialized
    """
    engine = getattr(request.app.state, "risk_engine", None)
    if engine is None:
        logger.error("Risk engine requested before application startup completed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Risk engine unavailable"
        )
    return engine


def get_app_settings(request: Request) -> BaseConfig:
    """Get the settings the application was created with."""
    return getattr(request.app.state, "settings", None) or get_settings()
