"""Integration tests for the risk engine HTTP API."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from api.main import create_app

API = "/api/v1"


@pytest.fixture
def test_client(settings, engine):
    """Create test client bound to a fresh engine."""
    with TestClient(create_app(settings, engine=engine)) as client:
        yield client


@pytest.fixture
def context_payload(nominal_context):
    """Nominal transaction context in its wire form."""
    return nominal_context.model_dump(by_alias=True, mode="json", exclude_none=True)


@pytest.fixture
def suspicious_payload(make_context, suspicious_fingerprint):
    context = make_context(device=suspicious_fingerprint)
    return context.model_dump(by_alias=True, mode="json", exclude_none=True)


@pytest.fixture
def alert_id(test_client, suspicious_payload):
    """Raise one critical alert and return its id."""
    response = test_client.post(f"{API}/risk/assess", json=suspicious_payload)
    assert response.status_code == 200
    return test_client.get(f"{API}/alerts").json()[0]["id"]


class TestAssessmentEndpoint:
    """Integration tests for POST /risk/assess."""

    def test_nominal_assessment(self, test_client, context_payload):
        response = test_client.post(f"{API}/risk/assess", json=context_payload)

        assert response.status_code == 200
        data = response.json()
        assert data["transactionId"] == context_payload["transactionId"]
        assert data["riskScore"] == 0.0
        assert data["riskLevel"] == "low"
        assert data["recommendedAction"] == "approve"
        assert data["verificationRequired"] is False
        assert data["factors"] == []
        assert "X-Request-ID" in response.headers

    def test_unusual_amount(self, test_client, context_payload):
        context_payload["amount"] = 1500.0

        data = test_client.post(f"{API}/risk/assess", json=context_payload).json()

        assert data["riskLevel"] == "medium"
        assert data["recommendedAction"] == "review"
        assert data["factors"][0]["name"] == "Unusual Amount"
        assert data["estimatedLoss"] == 750.0

    def test_velocity_burst(self, test_client, history_provider, context_payload, transaction_time):
        for minutes in range(1, 12):
            history_provider.record("user_456", 150.0, transaction_time - timedelta(minutes=minutes))

        data = test_client.post(f"{API}/risk/assess", json=context_payload).json()

        assert data["riskLevel"] == "critical"
        assert data["recommendedAction"] == "block"

    def test_invalid_context(self, test_client, context_payload):
        del context_payload["device"]
        context_payload["amount"] = -5

        response = test_client.post(f"{API}/risk/assess", json=context_payload)

        assert response.status_code == 422
        data = response.json()
        assert data["error_code"] == "invalid_input"
        assert {e["field"] for e in data["validation_errors"]} == {"amount", "device"}

    def test_non_object_body(self, test_client):
        response = test_client.post(f"{API}/risk/assess", json=["not", "a", "context"])

        assert response.status_code == 422
        assert response.json()["error_code"] == "validation_error"

    def test_timeout_query_parameter(self, test_client, context_payload):
        response = test_client.post(f"{API}/risk/assess", params={"timeout_ms": 500}, json=context_payload)
        assert response.status_code == 200

        response = test_client.post(f"{API}/risk/assess", params={"timeout_ms": 0}, json=context_payload)
        assert response.status_code == 422


class TestAlertEndpoints:
    """Integration tests for alert review."""

    def test_list_and_filter(self, test_client, alert_id):
        assert [a["id"] for a in test_client.get(f"{API}/alerts").json()] == [alert_id]
        assert test_client.get(f"{API}/alerts", params={"status": "resolved"}).json() == []
        assert len(test_client.get(f"{API}/alerts", params={"severity": "critical"}).json()) == 1
        assert test_client.get(f"{API}/alerts", params={"userId": "someone_else"}).json() == []

    def test_get_alert(self, test_client, alert_id):
        data = test_client.get(f"{API}/alerts/{alert_id}").json()

        assert data["type"] == "device_anomaly"
        assert data["status"] == "active"
        assert data["recommendedAction"] == "block"

    def test_lifecycle(self, test_client, alert_id):
        response = test_client.post(f"{API}/alerts/{alert_id}/investigate", json={"actor": "analyst_1"})
        assert response.status_code == 200
        assert response.json()["status"] == "investigating"

        response = test_client.post(
            f"{API}/alerts/{alert_id}/resolve",
            json={"resolvedBy": "analyst_1", "action": "false_positive", "notes": "Known device swap"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "false_positive"

        response = test_client.post(
            f"{API}/alerts/{alert_id}/resolve",
            json={"resolvedBy": "analyst_1", "action": "no_action"},
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "invalid_state_transition"

        analytics = test_client.get(f"{API}/analytics").json()
        assert analytics["falsePositives"] == 1

    def test_invalid_resolution(self, test_client, alert_id):
        response = test_client.post(f"{API}/alerts/{alert_id}/resolve", json={"action": "shrug"})

        assert response.status_code == 422
        assert response.json()["error_code"] == "validation_error"

    def test_unknown_alert(self, test_client):
        response = test_client.get(f"{API}/alerts/alert_missing")

        assert response.status_code == 404
        assert response.json()["error_code"] == "not_found"


class TestTuningEndpoints:
    """Integration tests for pattern and rule tuning."""

    def test_list_patterns_and_rules(self, test_client):
        patterns = test_client.get(f"{API}/patterns").json()
        assert [p["id"] for p in patterns] == ["high_amount_velocity", "structuring", "large_transfer"]

        rules = test_client.get(f"{API}/rules", params={"patternId": "large_transfer"}).json()
        assert [r["id"] for r in rules] == ["large_amount_check", "recipient_blacklist_check"]

    def test_register_pattern(self, test_client):
        pattern = {
            "id": "night_burst",
            "name": "Night Burst",
            "riskLevel": "high",
            "rules": [
                {"id": "night_burst_check", "name": "Night burst", "condition": "hour < 6 AND history.count_1h > 2",
                 "weight": 0.7, "threshold": 0.5},
            ],
        }

        response = test_client.post(f"{API}/patterns", json=pattern)

        assert response.status_code == 201
        assert response.json()["isActive"] is True
        assert test_client.get(f"{API}/patterns/night_burst").status_code == 200

    def test_register_invalid_pattern(self, test_client):
        pattern = {
            "id": "broken",
            "name": "Broken",
            "riskLevel": "high",
            "rules": [{"id": "broken_check", "name": "Broken", "condition": "amount >", "weight": 0.5, "threshold": 0.5}],
        }

        response = test_client.post(f"{API}/patterns", json=pattern)

        assert response.status_code == 400
        assert response.json()["error_code"] == "invalid_configuration"
        assert test_client.get(f"{API}/patterns/broken").status_code == 404

    def test_update_pattern_and_rule(self, test_client):
        response = test_client.patch(f"{API}/patterns/structuring", json={"isActive": False})
        assert response.json()["isActive"] is False

        response = test_client.patch(f"{API}/rules/large_amount_check", json={"weight": 0.55})
        assert response.json()["weight"] == 0.55

    def test_invalid_rule_update(self, test_client):
        response = test_client.patch(f"{API}/rules/large_amount_check", json={"weight": 7})
        assert response.status_code == 400

        response = test_client.patch(f"{API}/rules/missing", json={"weight": 0.5})
        assert response.status_code == 404


class TestDeviceEndpoints:
    """Integration tests for device enrollment."""

    def test_enroll_and_revoke(self, test_client, context_payload):
        test_client.post(f"{API}/risk/assess", json=context_payload)

        enrolled = test_client.post(f"{API}/devices/dev_nominal/enroll")
        assert enrolled.status_code == 200
        assert enrolled.json()["isTrusted"] is True

        revoked = test_client.post(f"{API}/devices/dev_nominal/revoke").json()
        assert revoked["isTrusted"] is False
        assert test_client.get(f"{API}/devices/dev_nominal").json()["sightingCount"] == 1

    def test_unknown_device(self, test_client):
        assert test_client.post(f"{API}/devices/missing/enroll").status_code == 404


class TestOperationalEndpoints:
    """Integration tests for health, metrics and analytics."""

    def test_health(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["environment"] == "testing"
        assert data["engine"]["patterns"] == 3

    def test_metrics(self, test_client):
        response = test_client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")

    def test_analytics(self, test_client, context_payload):
        test_client.post(f"{API}/risk/assess", json=context_payload)

        data = test_client.get(f"{API}/analytics").json()

        assert data["totalTransactions"] == 1
        assert data["deviceBreakdown"][0]["key"] == "chrome"
