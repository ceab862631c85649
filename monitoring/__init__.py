"""Monitoring package for the risk assessment engine."""

from .alerting import (
    AlertEvent,
    AlertManager,
    WebhookNotifier,
    derive_alert_type,
)
from .analytics import AnalyticsAggregator
from . import metrics

__all__ = [
    # Alerting
    "AlertEvent",
    "AlertManager",
    "WebhookNotifier",
    "derive_alert_type",

    # Analytics
    "AnalyticsAggregator",

    # Metrics
    "metrics",
]
