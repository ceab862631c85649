"""Pytest configuration and shared fixtures for risk engine tests."""

import os
from datetime import datetime, timedelta, timezone

import pytest

# Test environment setup
os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ.pop("ALERT_WEBHOOK_URL", None)

# Import after environment setup
from config import TestingConfig, reload_settings
from risk_engine.devices import DeviceTrustRegistry
from risk_engine.engine import create_risk_engine
from risk_engine.history import InMemoryHistoryProvider
from risk_engine.models import (
    BehaviorSignals,
    DeviceFingerprint,
    HardwareProfile,
    Location,
    NetworkInfo,
    TransactionContext,
    TransactionType,
    UserHistory,
)
from risk_engine.rules import PatternRuleEngine, build_default_patterns


# Pytest configuration
def pytest_configure(config):
    """Configure pytest settings."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (deselect with '-m \"not unit\"')"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running (deselect with '-m \"not slow\"')"
    )


def pytest_collection_modifyitems(config, items):
    """Mark everything under tests/unit as a unit test."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)


# Settings

@pytest.fixture
def settings():
    """Fresh testing configuration."""
    reload_settings()
    return TestingConfig()


# Transaction data

NOON = datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def transaction_time():
    """Daytime transaction timestamp."""
    return NOON


@pytest.fixture
def nominal_fingerprint():
    """Fingerprint with no suspicion signals besides being unenrolled."""
    return DeviceFingerprint(
        device_id="dev_nominal",
        browser="Chrome 126",
        os="macOS 14",
        screen_resolution="2560x1440",
        timezone="Europe/Berlin",
        language="en-US",
        hardware=HardwareProfile(cores=8, memory=16, storage=512),
        network=NetworkInfo(connection_type="wifi", isp="Telekom", country="DE"),
        behavior=BehaviorSignals(
            mouse_movement=[120.0, 85.5, 240.2, 60.1],
            keystroke_timing=[110.0, 180.0, 95.0, 240.0, 130.0, 160.0],
        ),
    )


@pytest.fixture
def suspicious_fingerprint():
    """Fingerprint scoring 0.9: unknown OS, low-end hardware, scripted mouse."""
    return DeviceFingerprint(
        device_id="dev_suspicious",
        browser="Chrome 126",
        os=None,
        hardware=HardwareProfile(cores=1, memory=8),
        network=NetworkInfo(connection_type="wifi"),
        behavior=BehaviorSignals(mouse_movement=[1.0, 2.0, 1.5]),
    )


@pytest.fixture
def established_history():
    """History of a regular user with a $500 maximum."""
    return UserHistory(
        total_transactions=50,
        average_amount=200.0,
        max_amount=500.0,
        last_transaction=NOON - timedelta(days=2),
        frequent_recipients=["user_789"],
        frequent_merchants=[],
        frequent_countries=["US"],
    )


@pytest.fixture
def make_context(nominal_fingerprint, established_history, transaction_time):
    """Factory building a nominal transaction context with overrides."""
    counter = {"n": 0}

    def _make(**overrides) -> TransactionContext:
        counter["n"] += 1
        data = dict(
            transaction_id=f"txn_{counter['n']:04d}",
            user_id="user_456",
            amount=150.0,
            currency="USD",
            type=TransactionType.SEND,
            recipient="user_789",
            category="general",
            timestamp=transaction_time,
            location=Location(country="US", city="New York"),
            device=nominal_fingerprint,
            user_history=established_history,
        )
        data.update(overrides)
        return TransactionContext(**data)

    return _make


@pytest.fixture
def nominal_context(make_context):
    return make_context()


# Stores

@pytest.fixture
def registry():
    return DeviceTrustRegistry()


@pytest.fixture
def history_provider():
    return InMemoryHistoryProvider()


@pytest.fixture
def rule_engine():
    return PatternRuleEngine(patterns=build_default_patterns())


@pytest.fixture
def engine(settings, history_provider):
    """Engine with fresh stores and the default pattern catalogue."""
    return create_risk_engine(settings, history_provider=history_provider)
