"""Unit tests for the risk assessment engine."""

import asyncio
import time
from datetime import timedelta
from unittest.mock import Mock

import pytest

from risk_engine.devices import DeviceTrustRegistry
from risk_engine.engine import (
    DEVICE_REGISTRY,
    HISTORY_1H,
    HISTORY_24H,
    RiskAssessmentEngine,
    create_risk_engine,
    get_risk_engine,
    initialize_risk_engine,
)
from risk_engine.exceptions import InputError, NotFoundError
from risk_engine.history import HistorySummary
from risk_engine.models import (
    AlertStatus,
    AlertType,
    FactorCategory,
    Location,
    RecommendedAction,
    RiskLevel,
)


class SlowHistoryProvider:
    """History provider that never answers within a short deadline."""

    async def get_summary(self, user_id, window, as_of):
        await asyncio.sleep(1.0)
        return HistorySummary.empty()


class FailingHistoryProvider:
    async def get_summary(self, user_id, window, as_of):
        raise ConnectionError("ledger unreachable")


class SlowRegistry(DeviceTrustRegistry):
    """Registry whose upsert blocks past a short deadline."""

    def upsert(self, fingerprint):
        time.sleep(0.3)
        return super().upsert(fingerprint)


def record_burst(history_provider, as_of, count):
    for minutes in range(1, count + 1):
        history_provider.record("user_456", 150.0, as_of - timedelta(minutes=minutes), recipient="user_789")


class TestAssessment:
    """Test suite for assess_transaction_risk."""

    @pytest.mark.asyncio
    async def test_nominal_transaction(self, engine, nominal_context):
        assessment = await engine.assess_transaction_risk(nominal_context)

        assert assessment.transaction_id == nominal_context.transaction_id
        assert assessment.risk_score == 0.0
        assert assessment.risk_level == RiskLevel.LOW
        assert assessment.recommended_action == RecommendedAction.APPROVE
        assert assessment.confidence == 0.5
        assert assessment.factors == []
        assert assessment.verification_required is False
        assert assessment.estimated_loss == 0.0
        assert assessment.unavailable_collaborators == []
        assert assessment.processing_time >= 0.0

    @pytest.mark.asyncio
    async def test_unusual_amount(self, engine, make_context):
        """1500 against a 500 historical maximum scores medium and goes to review."""
        assessment = await engine.assess_transaction_risk(make_context(amount=1500.0))

        assert [f.category for f in assessment.factors] == [FactorCategory.TRANSACTION]
        assert assessment.factors[0].impact == pytest.approx(50.0)
        assert assessment.factors[0].weight == 0.7
        assert assessment.risk_score == pytest.approx(50.0)
        assert assessment.risk_level == RiskLevel.MEDIUM
        assert assessment.recommended_action == RecommendedAction.REVIEW
        assert assessment.confidence == pytest.approx(0.6)
        assert assessment.estimated_loss == 750.0
        assert engine.get_alerts() == []

    @pytest.mark.asyncio
    async def test_velocity_burst(self, engine, history_provider, nominal_context, transaction_time):
        """Eleven transfers in the trailing hour block the transaction."""
        record_burst(history_provider, transaction_time, 11)

        assessment = await engine.assess_transaction_risk(nominal_context)

        assert [f.name for f in assessment.factors] == ["High Velocity"]
        assert assessment.factors[0].impact == 100.0
        assert assessment.risk_score == 100.0
        assert assessment.risk_level == RiskLevel.CRITICAL
        assert assessment.recommended_action == RecommendedAction.BLOCK
        assert assessment.verification_required is True

        alerts = engine.get_alerts()
        assert len(alerts) == 1
        assert alerts[0].type == AlertType.UNUSUAL_PATTERN
        assert alerts[0].transaction_id == nominal_context.transaction_id

    @pytest.mark.asyncio
    async def test_suspicious_device(self, engine, make_context, suspicious_fingerprint):
        assessment = await engine.assess_transaction_risk(make_context(device=suspicious_fingerprint))

        assert len(assessment.factors) == 1
        device_factor = assessment.factors[0]
        assert device_factor.category == FactorCategory.DEVICE
        assert device_factor.impact == pytest.approx(90.0)
        assert device_factor.evidence["is_trusted"] is False
        assert assessment.risk_level == RiskLevel.CRITICAL
        assert engine.get_alerts()[0].type == AlertType.DEVICE_ANOMALY
        assert engine.get_device("dev_suspicious").sighting_count == 1

    @pytest.mark.asyncio
    async def test_rapid_location_change(self, engine, history_provider, make_context, transaction_time):
        """A London transfer two hours before a New York one raises a location alert."""
        london = Location(country="GB", latitude=51.5074, longitude=-0.1278)
        history_provider.record("user_456", 100.0, transaction_time - timedelta(hours=2), location=london)
        context = make_context(location=Location(country="US", city="New York", latitude=40.7128, longitude=-74.0060))

        assessment = await engine.assess_transaction_risk(context)

        assert [f.name for f in assessment.factors] == ["Rapid Location Change"]
        assert assessment.risk_score == 70.0
        assert assessment.risk_level == RiskLevel.HIGH
        assert engine.get_alerts()[0].type == AlertType.LOCATION_ANOMALY

    @pytest.mark.asyncio
    async def test_all_collaborators_unavailable(self, engine, nominal_context):
        """With no signals the engine returns the conservative default."""
        engine.history_provider = SlowHistoryProvider()
        engine.registry = SlowRegistry()

        assessment = await engine.assess_transaction_risk(nominal_context, timeout_ms=50)

        assert assessment.risk_score == 60.0
        assert assessment.risk_level == RiskLevel.HIGH
        assert assessment.recommended_action == RecommendedAction.REVIEW
        assert assessment.verification_required is True
        assert assessment.confidence == 0.0
        assert assessment.factors == []
        assert assessment.estimated_loss == 90.0
        assert assessment.unavailable_collaborators == [HISTORY_1H, HISTORY_24H, DEVICE_REGISTRY]
        assert engine.get_alerts()[0].type == AlertType.SUSPICIOUS_TRANSACTION

    @pytest.mark.asyncio
    async def test_partial_degradation_lowers_confidence(self, engine, nominal_context):
        engine.history_provider = FailingHistoryProvider()

        assessment = await engine.assess_transaction_risk(nominal_context)

        assert assessment.unavailable_collaborators == [HISTORY_1H, HISTORY_24H]
        assert assessment.degraded is True
        assert assessment.risk_level == RiskLevel.LOW
        assert assessment.confidence == pytest.approx(0.1667)

    @pytest.mark.asyncio
    async def test_degraded_confidence_below_full_run(self, engine, nominal_context):
        full = await engine.assess_transaction_risk(nominal_context)
        engine.history_provider = FailingHistoryProvider()

        degraded = await engine.assess_transaction_risk(nominal_context)

        assert full.unavailable_collaborators == []
        assert degraded.risk_level == full.risk_level
        assert degraded.confidence < full.confidence

    @pytest.mark.asyncio
    async def test_slow_collaborator_bounded_by_deadline(self, engine, nominal_context):
        engine.history_provider = SlowHistoryProvider()

        started = time.perf_counter()
        assessment = await engine.assess_transaction_risk(nominal_context, timeout_ms=50)
        elapsed = time.perf_counter() - started

        assert elapsed < 0.5
        assert assessment.processing_time >= 45.0
        assert assessment.unavailable_collaborators == [HISTORY_1H, HISTORY_24H]

    @pytest.mark.asyncio
    async def test_slow_notifier_does_not_delay_assessment(self, settings, make_context, suspicious_fingerprint):
        async def slow_channel(event):
            await asyncio.sleep(1.0)

        engine = create_risk_engine(settings, notification_channels=[slow_channel])

        started = time.perf_counter()
        assessment = await engine.assess_transaction_risk(make_context(device=suspicious_fingerprint), timeout_ms=50)
        elapsed = time.perf_counter() - started

        assert assessment.risk_level == RiskLevel.CRITICAL
        assert elapsed < 0.5
        assert assessment.processing_time <= elapsed * 1000
        assert engine.alert_manager.pending_notifications == 1

        await engine.alert_manager.drain(timeout=0.01)
        assert engine.alert_manager.pending_notifications == 0

    @pytest.mark.asyncio
    async def test_missing_velocity_is_neutral(self, engine, history_provider, nominal_context, transaction_time):
        """A burst that cannot be read does not fire the velocity factor."""
        record_burst(history_provider, transaction_time, 11)
        engine.history_provider = FailingHistoryProvider()

        assessment = await engine.assess_transaction_risk(nominal_context)

        assert assessment.factors == []

    @pytest.mark.asyncio
    async def test_repeat_assessment_is_identical(self, engine, make_context):
        context = make_context(amount=2500.0, recipient="user_999")

        first = await engine.assess_transaction_risk(context)
        second = await engine.assess_transaction_risk(context)

        assert first.risk_score == second.risk_score
        assert first.risk_level == second.risk_level
        assert first.factors == second.factors
        assert first.confidence == second.confidence

    @pytest.mark.asyncio
    async def test_enrolled_device_is_trusted(self, engine, nominal_context):
        await engine.assess_transaction_risk(nominal_context)
        engine.enroll_device("dev_nominal")

        assessment = await engine.assess_transaction_risk(nominal_context)

        assert assessment.risk_score == 0.0
        assert engine.get_device("dev_nominal").risk_score == 0.0


class TestInputValidation:
    """Test suite for malformed contexts."""

    @pytest.mark.asyncio
    async def test_mapping_context_is_accepted(self, engine, nominal_context):
        payload = nominal_context.model_dump(by_alias=True, mode="json")

        assessment = await engine.assess_transaction_risk(payload)

        assert assessment.transaction_id == nominal_context.transaction_id

    @pytest.mark.asyncio
    async def test_missing_fields(self, engine, nominal_context):
        payload = nominal_context.model_dump(by_alias=True, mode="json")
        del payload["amount"]
        payload["currency"] = "US"

        with pytest.raises(InputError) as exc_info:
            await engine.assess_transaction_risk(payload)

        fields = {error["field"] for error in exc_info.value.errors}
        assert fields == {"amount", "currency"}
        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_non_positive_amount(self, engine, nominal_context):
        payload = nominal_context.model_dump(by_alias=True, mode="json")
        payload["amount"] = 0

        with pytest.raises(InputError):
            await engine.assess_transaction_risk(payload)

    @pytest.mark.asyncio
    async def test_rejected_context_leaves_no_trace(self, engine):
        with pytest.raises(InputError):
            await engine.assess_transaction_risk({"transactionId": "txn_bad"})

        assert engine.get_analytics().total_transactions == 0
        assert engine.get_engine_stats()["known_devices"] == 0


class TestSideEffects:
    """Test suite for alerting, analytics and audit."""

    @pytest.mark.asyncio
    async def test_analytics_are_recorded(self, engine, make_context):
        await engine.assess_transaction_risk(make_context())
        await engine.assess_transaction_risk(make_context(amount=1500.0))

        snapshot = engine.get_analytics()

        assert snapshot.total_transactions == 2
        assert snapshot.flagged_transactions == 1
        assert snapshot.top_risk_factors[0].factor == "Unusual Amount"

    @pytest.mark.asyncio
    async def test_audit_logger_receives_assessment(self, settings, nominal_context):
        audit = Mock()
        engine = create_risk_engine(settings, audit_logger=audit)

        await engine.assess_transaction_risk(nominal_context)

        kwargs = audit.log_risk_assessment.call_args.kwargs
        assert kwargs["transaction_id"] == nominal_context.transaction_id
        assert kwargs["risk_level"] == "low"
        assert kwargs["degraded"] is False

    @pytest.mark.asyncio
    async def test_alert_failure_does_not_fail_assessment(self, engine, make_context, suspicious_fingerprint):
        engine.alert_manager.on_assessment = Mock(side_effect=RuntimeError("store full"))

        assessment = await engine.assess_transaction_risk(make_context(device=suspicious_fingerprint))

        assert assessment.risk_level == RiskLevel.CRITICAL

    @pytest.mark.asyncio
    async def test_faulting_rule_does_not_fail_assessment(self, engine, nominal_context):
        engine.register_pattern({
            "id": "broken",
            "name": "Broken",
            "riskLevel": "high",
            "rules": [{"id": "broken_rule", "name": "Broken", "condition": "currency > 5", "weight": 0.5, "threshold": 0.5}],
        })

        assessment = await engine.assess_transaction_risk(nominal_context)

        assert assessment.factors == []


class TestAdministration:
    """Test suite for the operator surface."""

    @pytest.mark.asyncio
    async def test_alert_resolution_feeds_precision(self, engine, make_context, suspicious_fingerprint):
        for _ in range(2):
            await engine.assess_transaction_risk(make_context(device=suspicious_fingerprint))
        newest, oldest = engine.get_alerts()

        await engine.mark_investigating(oldest.id, "analyst")
        await engine.resolve_alert(oldest.id, {"resolvedBy": "analyst", "action": "confirmed_fraud"})
        closed = await engine.resolve_alert(newest.id, {"resolvedBy": "analyst", "action": "false_positive"})

        assert closed.status == AlertStatus.FALSE_POSITIVE
        snapshot = engine.get_analytics()
        assert snapshot.true_positives == 1
        assert snapshot.false_positives == 1
        assert snapshot.precision == 0.5

    @pytest.mark.asyncio
    async def test_malformed_resolution(self, engine, make_context, suspicious_fingerprint):
        await engine.assess_transaction_risk(make_context(device=suspicious_fingerprint))
        alert = engine.get_alerts()[0]

        with pytest.raises(InputError):
            await engine.resolve_alert(alert.id, {"action": "shrug"})

        assert engine.get_alert(alert.id).status == AlertStatus.ACTIVE

    def test_pattern_passthrough(self, engine):
        assert len(engine.get_patterns()) == 3
        engine.update_pattern("structuring", {"isActive": False})

        assert engine.get_pattern("structuring").is_active is False
        assert engine.update_rule("large_amount_check", {"weight": 0.6}).weight == 0.6
        assert [r.id for r in engine.get_rules("large_transfer")][0] == "large_amount_check"

    def test_unknown_device(self, engine):
        with pytest.raises(NotFoundError):
            engine.get_device("missing")
        with pytest.raises(NotFoundError):
            engine.revoke_device("missing")

    @pytest.mark.asyncio
    async def test_engine_stats(self, engine, nominal_context):
        await engine.assess_transaction_risk(nominal_context)

        stats = engine.get_engine_stats()

        assert stats["patterns"] == 3
        assert stats["active_patterns"] == 3
        assert stats["known_devices"] == 1
        assert stats["alerts"] == 0
        assert stats["decision_policy"]["critical"] == "block"


class TestEngineFactory:
    """Test suite for engine construction."""

    def test_engines_are_isolated(self, settings):
        first = create_risk_engine(settings)
        second = create_risk_engine(settings)

        first.update_pattern("structuring", {"is_active": False})

        assert second.get_pattern("structuring").is_active is True
        assert first.registry is not second.registry

    def test_custom_patterns(self, settings):
        engine = create_risk_engine(settings, patterns=[])
        assert engine.get_patterns() == []

    def test_global_engine(self, settings):
        engine = initialize_risk_engine(settings)

        assert isinstance(engine, RiskAssessmentEngine)
        assert get_risk_engine() is engine

    def test_webhook_channel_from_settings(self, settings):
        settings.alert_webhook_url = "https://hooks.example.com/risk"

        engine = create_risk_engine(settings)

        assert len(engine.alert_manager.notification_channels) == 1
