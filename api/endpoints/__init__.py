"""API endpoints package.

- assessment: Transaction risk assessment
- admin: Alerts, patterns, rules, analytics and devices
- health: Health check and Prometheus metrics
"""

from .assessment import router as assessment_router
from .admin import router as admin_router
from .health import router as health_router

__all__ = [
    "assessment_router",
    "admin_router",
    "health_router",
]
