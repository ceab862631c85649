"""Risk assessment engine.

Orchestrates one assessment per transaction:

    context -> collaborator lookups (history 1h, history 24h, device upsert)
            -> risk factors -> score -> decision -> alert -> analytics

Collaborator lookups run concurrently under the caller's deadline. A lookup
that times out or fails is treated as a neutral signal and lowers confidence;
only when every lookup is unavailable does the engine fall back to a
conservative default assessment.
"""

import asyncio
import logging
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from config import BaseConfig, get_settings
from config.logging import AuditLogger
from monitoring import metrics
from monitoring.alerting import AlertManager, Notifier, WebhookNotifier
from monitoring.analytics import AnalyticsAggregator

from .devices import DeviceTrustRegistry
from .exceptions import CollaboratorUnavailable, InputError, NotFoundError
from .factors import RiskFactorAggregator, RiskFactorConfig
from .history import HistoryProvider, HistorySummary, HistoryWindow, InMemoryHistoryProvider
from .models import (
    AlertResolution,
    AlertSeverity,
    AlertStatus,
    AnalyticsSnapshot,
    DeviceFingerprint,
    FraudAlert,
    FraudPattern,
    FraudRule,
    PatternUpdate,
    RiskAssessment,
    RiskLevel,
    RuleUpdate,
    TransactionContext,
)
from .rules import EvaluationContext, PatternRuleEngine, build_default_patterns
from .scoring import DecisionPolicy, RiskScorer

logger = logging.getLogger(__name__)

HISTORY_1H = "history_1h"
HISTORY_24H = "history_24h"
DEVICE_REGISTRY = "device_registry"
COLLABORATORS = (HISTORY_1H, HISTORY_24H, DEVICE_REGISTRY)

# Returned when no collaborator answered in time
FALLBACK_RISK_SCORE = 60.0
FALLBACK_RISK_LEVEL = RiskLevel.HIGH


def validation_errors(exc: ValidationError) -> List[Dict[str, str]]:
    """Flatten pydantic errors into field/message pairs."""
    return [
        {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]


class RiskAssessmentEngine:
    """Real-time transaction risk assessment service."""

    def __init__(self,
                 settings: BaseConfig,
                 registry: DeviceTrustRegistry,
                 rule_engine: PatternRuleEngine,
                 aggregator: RiskFactorAggregator,
                 scorer: RiskScorer,
                 policy: DecisionPolicy,
                 alert_manager: AlertManager,
                 analytics: AnalyticsAggregator,
                 history_provider: HistoryProvider,
                 audit_logger: Optional[AuditLogger] = None):
        """Initialize the engine with explicitly injected stores.

        Args:
            settings: Application settings
            registry: Device Trust Registry
            rule_engine: Pattern/Rule Engine
            aggregator: Risk factor aggregator
            scorer: Risk scorer
            policy: Decision policy
            alert_manager: Alert manager
            analytics: Analytics aggregator
            history_provider: Historical transaction summary collaborator
            audit_logger: Audit logger for completed assessments
        """
        self.settings = settings
        self.registry = registry
        self.rule_engine = rule_engine
        self.aggregator = aggregator
        self.scorer = scorer
        self.policy = policy
        self.alert_manager = alert_manager
        self.analytics = analytics
        self.history_provider = history_provider
        self.audit_logger = audit_logger

        logger.info(f"RiskAssessmentEngine initialized with {len(rule_engine.get_patterns())} fraud patterns")

    # Assessment

    async def assess_transaction_risk(self,
                                      context: Union[TransactionContext, Mapping[str, Any]],
                                      timeout_ms: Optional[float] = None) -> RiskAssessment:
        """Assess the risk of one transaction.

        Args:
            context: Transaction context, or its raw mapping form
            timeout_ms: Deadline for collaborator lookups; defaults to
                ``settings.assessment_timeout_ms``

        Returns:
            Risk assessment

        Raises:
            InputError: If the context is missing required fields or is malformed
        """
        start_time = time.perf_counter()
        context = self._validate_context(context)
        snapshot = self.rule_engine.snapshot()

        deadline = (timeout_ms if timeout_ms is not None else self.settings.assessment_timeout_ms) / 1000.0
        signals = await self._gather_signals(context, deadline)
        unavailable = [name for name in COLLABORATORS if signals[name] is None]

        if len(unavailable) == len(COLLABORATORS):
            assessment = self._fallback_assessment(context, unavailable, start_time)
        else:
            eval_ctx = self._evaluation_context(context, signals)
            factors = self.aggregator.assemble(eval_ctx, snapshot=snapshot)
            result = self.scorer.score(factors)
            availability = (len(COLLABORATORS) - len(unavailable)) / len(COLLABORATORS)

            assessment = RiskAssessment(
                transaction_id=context.transaction_id,
                risk_score=result.risk_score,
                risk_level=result.risk_level,
                confidence=round(result.confidence * availability, 4),
                factors=factors,
                recommended_action=self.policy.decide(result.risk_level),
                verification_required=self.policy.requires_verification(result.risk_level),
                estimated_loss=self.policy.estimated_loss(context.amount, result.risk_score),
                processing_time=self._elapsed_ms(start_time),
                unavailable_collaborators=unavailable,
            )

        await self._record_outcome(context, assessment)
        assessment = assessment.model_copy(update={"processing_time": self._elapsed_ms(start_time)})
        self._report(context, assessment)
        return assessment

    def _validate_context(self, context: Union[TransactionContext, Mapping[str, Any]]) -> TransactionContext:
        if isinstance(context, TransactionContext):
            return context
        try:
            return TransactionContext.model_validate(context)
        except ValidationError as e:
            errors = validation_errors(e)
            fields = sorted({error["field"] for error in errors})
            logger.warning(f"Rejected transaction context: {fields}")
            raise InputError(message=f"Invalid transaction context: {', '.join(fields)}", errors=errors) from e

    async def _gather_signals(self, context: TransactionContext, deadline: float) -> Dict[str, Any]:
        """Run all collaborator lookups concurrently, each bounded by the deadline."""
        calls: Dict[str, Callable[[], Awaitable[Any]]] = {
            HISTORY_1H: lambda: self.history_provider.get_summary(
                context.user_id, HistoryWindow.ONE_HOUR, context.timestamp
            ),
            HISTORY_24H: lambda: self.history_provider.get_summary(
                context.user_id, HistoryWindow.ONE_DAY, context.timestamp
            ),
            DEVICE_REGISTRY: lambda: asyncio.to_thread(self.registry.upsert, context.device),
        }
        results = await asyncio.gather(*(
            self._call_collaborator(name, call, deadline, context.transaction_id)
            for name, call in calls.items()
        ))
        return dict(zip(calls, results))

    async def _call_collaborator(self,
                                 name: str,
                                 call: Callable[[], Awaitable[Any]],
                                 deadline: float,
                                 transaction_id: str) -> Optional[Any]:
        try:
            return await asyncio.wait_for(call(), timeout=deadline)
        except Exception as e:
            failure = CollaboratorUnavailable(name, e)
            logger.warning(
                failure.message,
                extra={"transaction_id": transaction_id, "collaborator": name}
            )
            metrics.record_collaborator_failure(name)
            return None

    def _evaluation_context(self, context: TransactionContext, signals: Dict[str, Any]) -> EvaluationContext:
        history_1h: Optional[HistorySummary] = signals[HISTORY_1H]
        history_24h: Optional[HistorySummary] = signals[HISTORY_24H]
        device_score: Optional[float] = signals[DEVICE_REGISTRY]

        device_trusted = None
        if device_score is not None:
            record = self.registry.lookup(context.device.device_id)
            device_trusted = record.is_trusted if record is not None else False

        return EvaluationContext(
            transaction=context,
            count_1h=history_1h.count if history_1h is not None else None,
            count_24h=history_24h.count if history_24h is not None else None,
            device_score=device_score,
            device_trusted=device_trusted,
            last_location=history_24h.last_location if history_24h is not None else None,
            last_location_at=history_24h.last_location_at if history_24h is not None else None,
        )

    def _fallback_assessment(self,
                             context: TransactionContext,
                             unavailable: List[str],
                             start_time: float) -> RiskAssessment:
        """Conservative assessment used when no collaborator answered."""
        logger.error(
            f"All collaborators unavailable for {context.transaction_id}, returning conservative default",
            extra={"transaction_id": context.transaction_id}
        )
        return RiskAssessment(
            transaction_id=context.transaction_id,
            risk_score=FALLBACK_RISK_SCORE,
            risk_level=FALLBACK_RISK_LEVEL,
            confidence=0.0,
            factors=[],
            recommended_action=self.policy.fallback_action,
            verification_required=self.policy.requires_verification(FALLBACK_RISK_LEVEL),
            estimated_loss=self.policy.estimated_loss(context.amount, FALLBACK_RISK_SCORE),
            processing_time=self._elapsed_ms(start_time),
            unavailable_collaborators=unavailable,
        )

    async def _record_outcome(self, context: TransactionContext, assessment: RiskAssessment) -> None:
        """Alerting and analytics for a finished assessment."""
        try:
            await self.alert_manager.on_assessment(context, assessment)
        except Exception as e:
            logger.error(f"Failed to raise alert for {assessment.transaction_id}: {e}")

        try:
            self.analytics.record(context, assessment.risk_score, assessment.factors)
        except Exception as e:
            logger.error(f"Failed to record analytics for {assessment.transaction_id}: {e}")

    def _report(self, context: TransactionContext, assessment: RiskAssessment) -> None:
        """Metrics and audit for a finished assessment."""
        metrics.record_assessment(
            assessment.risk_level.value,
            assessment.recommended_action.value,
            assessment.processing_time / 1000.0,
        )

        if self.audit_logger is not None:
            self.audit_logger.log_risk_assessment(
                transaction_id=assessment.transaction_id,
                user_id=context.user_id,
                risk_score=assessment.risk_score,
                risk_level=assessment.risk_level.value,
                recommended_action=assessment.recommended_action.value,
                confidence=assessment.confidence,
                factor_names=[f.name for f in assessment.factors],
                processing_time_ms=assessment.processing_time,
                degraded=assessment.degraded,
            )

        logger.debug(
            f"Assessed {assessment.transaction_id}: {assessment.risk_score:.2f} "
            f"({assessment.risk_level.value}) in {assessment.processing_time:.2f}ms"
        )

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return round((time.perf_counter() - start_time) * 1000, 3)

    # Alerts

    def get_alerts(self,
                   status: Optional[AlertStatus] = None,
                   severity: Optional[AlertSeverity] = None,
                   user_id: Optional[str] = None,
                   limit: int = 100) -> List[FraudAlert]:
        return self.alert_manager.get_alerts(status=status, severity=severity, user_id=user_id, limit=limit)

    def get_alert(self, alert_id: str) -> FraudAlert:
        return self.alert_manager.get_alert(alert_id)

    async def mark_investigating(self, alert_id: str, actor: str) -> FraudAlert:
        return await self.alert_manager.mark_investigating(alert_id, actor)

    async def resolve_alert(self, alert_id: str, resolution: Union[AlertResolution, Mapping[str, Any]]) -> FraudAlert:
        """Close an alert and feed the outcome to analytics.

        Raises:
            InputError: If the resolution is malformed
            NotFoundError: If the alert does not exist
            InvalidStateTransition: If the alert is already closed
        """
        if not isinstance(resolution, AlertResolution):
            try:
                resolution = AlertResolution.model_validate(resolution)
            except ValidationError as e:
                raise InputError(message="Invalid alert resolution", errors=validation_errors(e)) from e

        alert = await self.alert_manager.resolve_alert(alert_id, resolution)
        self.analytics.record_resolution(false_positive=alert.status == AlertStatus.FALSE_POSITIVE)
        return alert

    # Patterns and rules

    def get_patterns(self) -> List[FraudPattern]:
        return self.rule_engine.get_patterns()

    def get_pattern(self, pattern_id: str) -> FraudPattern:
        return self.rule_engine.get_pattern(pattern_id)

    def register_pattern(self, pattern: Union[FraudPattern, Dict[str, Any]]) -> FraudPattern:
        return self.rule_engine.register_pattern(pattern)

    def update_pattern(self, pattern_id: str, update: Union[PatternUpdate, Dict[str, Any]]) -> FraudPattern:
        return self.rule_engine.update_pattern(pattern_id, update)

    def get_rules(self, pattern_id: Optional[str] = None) -> List[FraudRule]:
        return self.rule_engine.get_rules(pattern_id)

    def update_rule(self, rule_id: str, update: Union[RuleUpdate, Dict[str, Any]]) -> FraudRule:
        return self.rule_engine.update_rule(rule_id, update)

    # Analytics

    def get_analytics(self) -> AnalyticsSnapshot:
        return self.analytics.snapshot()

    # Devices

    def enroll_device(self, device_id: str) -> DeviceFingerprint:
        return self.registry.enroll(device_id)

    def revoke_device(self, device_id: str) -> DeviceFingerprint:
        return self.registry.revoke(device_id)

    def get_device(self, device_id: str) -> DeviceFingerprint:
        device = self.registry.lookup(device_id)
        if device is None:
            raise NotFoundError("Device", device_id)
        return device

    def get_engine_stats(self) -> Dict[str, Any]:
        """Get engine statistics.

        Returns:
            Dictionary with engine statistics
        """
        patterns = self.rule_engine.get_patterns()
        return {
            "patterns": len(patterns),
            "active_patterns": sum(1 for p in patterns if p.is_active),
            "known_devices": len(self.registry),
            "alerts": len(self.alert_manager),
            "active_alerts": len(self.alert_manager.get_active_alerts()),
            "decision_policy": self.policy.describe(),
        }


def create_risk_engine(settings: Optional[BaseConfig] = None,
                       history_provider: Optional[HistoryProvider] = None,
                       patterns: Optional[List[Union[FraudPattern, Dict[str, Any]]]] = None,
                       notification_channels: Optional[List[Notifier]] = None,
                       audit_logger: Optional[AuditLogger] = None) -> RiskAssessmentEngine:
    """Build an engine with fresh, isolated stores.

    Args:
        settings: Application settings; uses current settings if None
        history_provider: History collaborator; an empty in-memory ledger if None
        patterns: Fraud patterns to register; the default catalogue if None
        notification_channels: Alert notification channels
        audit_logger: Audit logger for assessments and alert events

    Returns:
        RiskAssessmentEngine instance
    """
    settings = settings or get_settings()
    metrics.set_metrics_enabled(settings.enable_metrics)

    rule_engine = PatternRuleEngine(
        patterns=build_default_patterns() if patterns is None else patterns,
        fault_listener=metrics.record_rule_fault,
    )

    channels = list(notification_channels or [])
    if settings.alert_webhook_url:
        channels.append(WebhookNotifier(
            settings.alert_webhook_url,
            timeout=settings.alert_webhook_timeout,
            environment=settings.environment.value,
        ))

    return RiskAssessmentEngine(
        settings=settings,
        registry=DeviceTrustRegistry(dormant_after=timedelta(days=settings.device_dormant_days)),
        rule_engine=rule_engine,
        aggregator=RiskFactorAggregator(rule_engine, RiskFactorConfig.from_settings(settings)),
        scorer=RiskScorer(),
        policy=DecisionPolicy(),
        alert_manager=AlertManager(
            notification_channels=channels,
            audit_logger=audit_logger,
            history_limit=settings.alert_history_limit,
        ),
        analytics=AnalyticsAggregator(flagged_threshold=settings.flagged_score_threshold),
        history_provider=history_provider or InMemoryHistoryProvider(),
        audit_logger=audit_logger,
    )


# Global engine instance
_risk_engine: Optional[RiskAssessmentEngine] = None


def get_risk_engine() -> RiskAssessmentEngine:
    """Get global risk engine instance.

    Returns:
        RiskAssessmentEngine instance
    """
    global _risk_engine

    if _risk_engine is None:
        _risk_engine = create_risk_engine()

    return _risk_engine


def initialize_risk_engine(settings: Optional[BaseConfig] = None, **kwargs) -> RiskAssessmentEngine:
    """Initialize global risk engine.

    Args:
        settings: Application settings
        **kwargs: Forwarded to :func:`create_risk_engine`

    Returns:
        RiskAssessmentEngine instance
    """
    global _risk_engine

    _risk_engine = create_risk_engine(settings, **kwargs)

    return _risk_engine
