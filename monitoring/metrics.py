"""Prometheus metrics for the risk assessment engine."""

import logging
from typing import Tuple

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

RISK_ASSESSMENTS_TOTAL = Counter(
    'risk_assessments_total',
    'Total number of risk assessments completed',
    ['risk_level', 'action']
)

RISK_ASSESSMENT_DURATION = Histogram(
    'risk_assessment_duration_seconds',
    'Time spent assessing a transaction',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

COLLABORATOR_FAILURES = Counter(
    'risk_collaborator_failures_total',
    'Collaborator lookups that timed out or failed',
    ['collaborator']
)

RULE_FAULTS = Counter(
    'risk_rule_faults_total',
    'Rule conditions that failed to evaluate',
    ['rule_id']
)

ALERTS_CREATED = Counter(
    'fraud_alerts_created_total',
    'Fraud alerts raised',
    ['alert_type', 'severity']
)

_enabled = True


def set_metrics_enabled(enabled: bool) -> None:
    """Turn metric collection on or off for the process."""
    global _enabled
    _enabled = enabled


def record_assessment(risk_level: str, action: str, duration_seconds: float) -> None:
    if not _enabled:
        return
    RISK_ASSESSMENTS_TOTAL.labels(risk_level=risk_level, action=action).inc()
    RISK_ASSESSMENT_DURATION.observe(duration_seconds)


def record_collaborator_failure(collaborator: str) -> None:
    if _enabled:
        COLLABORATOR_FAILURES.labels(collaborator=collaborator).inc()


def record_rule_fault(fault) -> None:
    """Fault listener for the Pattern/Rule Engine."""
    if _enabled:
        RULE_FAULTS.labels(rule_id=fault.rule_id).inc()


def record_alert_created(alert_type: str, severity: str) -> None:
    if _enabled:
        ALERTS_CREATED.labels(alert_type=alert_type, severity=severity).inc()


def render_latest() -> Tuple[bytes, str]:
    """Render all registered metrics in the Prometheus text format."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
