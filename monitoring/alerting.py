"""Fraud alert management.

Creates one alert per high or critical risk assessment, tracks its lifecycle
(active -> investigating -> resolved / false_positive) and fans lifecycle
events out to notification channels. Delivery runs in background tasks that
:meth:`AlertManager.drain` waits for. Alerts are never resolved automatically;
terminal states are reached only through :meth:`AlertManager.resolve_alert`.
"""

import asyncio
import logging
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

import aiohttp
from jinja2 import Template

from config.logging import AuditLogger
from risk_engine.exceptions import InvalidStateTransition, NotFoundError
from risk_engine.models import (
    AlertResolution,
    AlertSeverity,
    AlertStatus,
    AlertType,
    FactorCategory,
    FraudAlert,
    FraudFactor,
    ResolutionAction,
    RiskAssessment,
    RiskLevel,
    TransactionContext,
)
from risk_engine.scoring import dominant_factor
from . import metrics

logger = logging.getLogger(__name__)

# Highest priority first; the first category present among the factors wins.
ALERT_TYPE_PRIORITY = (
    (FactorCategory.DEVICE, AlertType.DEVICE_ANOMALY),
    (FactorCategory.LOCATION, AlertType.LOCATION_ANOMALY),
    (FactorCategory.NETWORK, AlertType.LOCATION_ANOMALY),
    (FactorCategory.BEHAVIORAL, AlertType.UNUSUAL_PATTERN),
)

ALERTING_LEVELS = {
    RiskLevel.HIGH: AlertSeverity.HIGH,
    RiskLevel.CRITICAL: AlertSeverity.CRITICAL,
}

DESCRIPTION_TEMPLATE = Template(
    "Transaction {{ transaction_id }} flagged for {{ factor_count }} risk "
    "factor{{ '' if factor_count == 1 else 's' }}. "
    "Amount: {{ '%.2f'|format(amount) }} {{ currency }}"
    "{% if degraded %} (assessed without: {{ degraded|join(', ') }}){% endif %}"
)


@dataclass
class AlertEvent:
    """Alert lifecycle event delivered to notification channels."""
    event: str
    alert: FraudAlert
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Notifier = Callable[[AlertEvent], Any]


def derive_alert_type(factors: Iterable[FraudFactor]) -> AlertType:
    """Pick the alert type by category priority."""
    categories = {FactorCategory(f.category) for f in factors}
    for category, alert_type in ALERT_TYPE_PRIORITY:
        if category in categories:
            return alert_type
    return AlertType.SUSPICIOUS_TRANSACTION


class WebhookNotifier:
    """Posts alert events as JSON to a webhook."""

    def __init__(self, url: str, timeout: int = 10, environment: str = "development"):
        self.url = url
        self.timeout = timeout
        self.environment = environment

    async def __call__(self, event: AlertEvent) -> None:
        alert = event.alert
        payload = {
            "event": event.event,
            "alert_id": alert.id,
            "type": alert.type.value,
            "severity": alert.severity.value,
            "status": alert.status.value,
            "title": alert.title,
            "description": alert.description,
            "transaction_id": alert.transaction_id,
            "risk_score": alert.risk_score,
            "timestamp": event.timestamp.isoformat(),
            "environment": self.environment,
            "service": "p2p-risk-engine",
        }

        async with aiohttp.ClientSession() as session:
            async with session.post(
                self.url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if response.status >= 300:
                    logger.error(f"Webhook notification failed for alert {alert.id}: HTTP {response.status}")
                else:
                    logger.info(f"Webhook notification sent for alert: {alert.id}")


class AlertManager:
    """Manager for fraud alerts and their notifications."""

    def __init__(self,
                 notification_channels: Optional[List[Notifier]] = None,
                 audit_logger: Optional[AuditLogger] = None,
                 history_limit: int = 10000,
                 clock: Optional[Callable[[], datetime]] = None):
        """Initialize the alert manager.

        Args:
            notification_channels: Callables receiving alert lifecycle events
            audit_logger: Audit logger for lifecycle events
            history_limit: Maximum number of alerts kept; oldest closed alerts go first
            clock: Source of timestamps
        """
        self.notification_channels: List[Notifier] = list(notification_channels or [])
        self.audit_logger = audit_logger
        self.history_limit = history_limit
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._alerts: "OrderedDict[str, FraudAlert]" = OrderedDict()
        self._lock = threading.Lock()
        self._deliveries: Set[asyncio.Task] = set()

    async def on_assessment(self,
                            context: TransactionContext,
                            assessment: RiskAssessment) -> Optional[FraudAlert]:
        """Create an alert for a high or critical assessment.

        Args:
            context: Assessed transaction
            assessment: Its risk assessment

        Returns:
            The new alert, or None for low and medium risk
        """
        severity = ALERTING_LEVELS.get(assessment.risk_level)
        if severity is None:
            return None

        alert = self._build_alert(context, assessment, severity)
        with self._lock:
            self._alerts[alert.id] = alert
            self._evict()
            created = alert.model_copy(deep=True)

        metrics.record_alert_created(created.type.value, created.severity.value)
        self._audit("created", created)
        logger.warning(f"Fraud alert raised: {created.id} - {created.title}")

        self._dispatch(AlertEvent("created", created))
        return created

    def _build_alert(self,
                     context: TransactionContext,
                     assessment: RiskAssessment,
                     severity: AlertSeverity) -> FraudAlert:
        top = dominant_factor(assessment.factors)
        title = f"Fraud Alert: {top.name}" if top is not None else "Fraud Alert: Assessment Degraded"

        description = DESCRIPTION_TEMPLATE.render(
            transaction_id=context.transaction_id,
            factor_count=len(assessment.factors),
            amount=context.amount,
            currency=context.currency,
            degraded=assessment.unavailable_collaborators,
        )

        evidence: Dict[str, Any] = {f.name: f.evidence for f in assessment.factors}
        if assessment.unavailable_collaborators:
            evidence["unavailable_collaborators"] = list(assessment.unavailable_collaborators)

        return FraudAlert(
            id=f"alert_{uuid.uuid4().hex[:16]}",
            type=derive_alert_type(assessment.factors),
            severity=severity,
            title=title,
            description=description,
            timestamp=self._clock(),
            transaction_id=assessment.transaction_id,
            user_id=context.user_id,
            risk_score=assessment.risk_score,
            recommended_action=assessment.recommended_action,
            factors=list(assessment.factors),
            evidence=evidence,
        )

    def _evict(self) -> None:
        overflow = len(self._alerts) - self.history_limit
        if overflow <= 0:
            return
        closed = [alert_id for alert_id, alert in self._alerts.items() if alert.status.is_terminal]
        for alert_id in closed[:overflow]:
            del self._alerts[alert_id]

    async def mark_investigating(self, alert_id: str, actor: str) -> FraudAlert:
        """Move an active alert under investigation.

        Raises:
            NotFoundError: If the alert does not exist
            InvalidStateTransition: If the alert is not active
        """
        with self._lock:
            alert = self._get(alert_id)
            if alert.status != AlertStatus.ACTIVE:
                raise InvalidStateTransition(alert_id, alert.status.value, AlertStatus.INVESTIGATING.value)
            alert.status = AlertStatus.INVESTIGATING
            alert.investigated_by = actor
            updated = alert.model_copy(deep=True)

        self._audit("investigating", updated, actor)
        self._dispatch(AlertEvent("investigating", updated))
        return updated

    async def resolve_alert(self, alert_id: str, resolution: AlertResolution) -> FraudAlert:
        """Close an alert with an explicit operator resolution.

        A ``false_positive`` action moves the alert to ``false_positive``;
        any other action moves it to ``resolved``.

        Raises:
            NotFoundError: If the alert does not exist
            InvalidStateTransition: If the alert is already closed
        """
        target = (AlertStatus.FALSE_POSITIVE
                  if resolution.action == ResolutionAction.FALSE_POSITIVE
                  else AlertStatus.RESOLVED)

        with self._lock:
            alert = self._get(alert_id)
            if alert.status.is_terminal:
                raise InvalidStateTransition(alert_id, alert.status.value, target.value)

            stamped = resolution.model_copy(update={"resolved_at": resolution.resolved_at or self._clock()})
            alert.resolution = stamped
            alert.status = target
            updated = alert.model_copy(deep=True)

        self._audit("resolved", updated, resolution.resolved_by)
        logger.info(f"Alert {alert_id} closed as {target.value} by {resolution.resolved_by}")
        self._dispatch(AlertEvent("resolved", updated))
        return updated

    def _get(self, alert_id: str) -> FraudAlert:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise NotFoundError("Alert", alert_id)
        return alert

    def get_alert(self, alert_id: str) -> FraudAlert:
        with self._lock:
            return self._get(alert_id).model_copy(deep=True)

    def get_alerts(self,
                   status: Optional[AlertStatus] = None,
                   severity: Optional[AlertSeverity] = None,
                   user_id: Optional[str] = None,
                   limit: int = 100) -> List[FraudAlert]:
        """Get alerts, newest first.

        Args:
            status: Only alerts in this status
            severity: Only alerts of this severity
            user_id: Only alerts for this user
            limit: Maximum number of alerts to return

        Returns:
            Matching alerts
        """
        with self._lock:
            candidates = list(reversed(self._alerts.values()))

        selected = []
        for alert in candidates:
            if status is not None and alert.status != status:
                continue
            if severity is not None and alert.severity != severity:
                continue
            if user_id is not None and alert.user_id != user_id:
                continue
            selected.append(alert.model_copy(deep=True))
            if len(selected) >= limit:
                break
        return selected

    def get_active_alerts(self) -> List[FraudAlert]:
        """Alerts that are not yet closed, newest first."""
        with self._lock:
            candidates = list(reversed(self._alerts.values()))
        return [a.model_copy(deep=True) for a in candidates if not a.status.is_terminal]

    def _dispatch(self, event: AlertEvent) -> None:
        """Schedule delivery of an alert event without waiting for it."""
        if not self.notification_channels:
            return
        task = asyncio.create_task(self._send_notifications(event))
        self._deliveries.add(task)
        task.add_done_callback(self._delivery_done)

    def _delivery_done(self, task: asyncio.Task) -> None:
        self._deliveries.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Notification delivery failed: {task.exception()}")

    async def _send_notifications(self, event: AlertEvent) -> None:
        """Send an alert event through all configured channels."""
        for channel in self.notification_channels:
            try:
                result = channel(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Failed to send notification through channel: {e}")

    @property
    def pending_notifications(self) -> int:
        return len(self._deliveries)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for scheduled notifications to finish.

        Args:
            timeout: Seconds to wait before cancelling what is still pending
        """
        if not self._deliveries:
            return
        pending = list(self._deliveries)
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            logger.warning(f"Cancelled {len(still_pending)} pending alert notifications")

    def _audit(self, event: str, alert: FraudAlert, actor: Optional[str] = None) -> None:
        if self.audit_logger is None:
            return
        self.audit_logger.log_alert_event(
            event=event,
            alert_id=alert.id,
            transaction_id=alert.transaction_id,
            severity=alert.severity.value,
            status=alert.status.value,
            actor=actor,
        )

    def __len__(self) -> int:
        return len(self._alerts)
