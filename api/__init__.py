"""HTTP surface for the risk assessment engine.

This module provides RESTful API endpoints for:
- Real-time transaction risk assessment
- Alert review and resolution
- Pattern and rule tuning
- Analytics, health checks and metrics
"""

from .main import create_app
from .dependencies import get_engine

__all__ = [
    "create_app",
    "get_engine",
]
