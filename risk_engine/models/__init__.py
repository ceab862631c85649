"""Data models for the risk assessment engine."""

from .base import BaseModel, FrozenModel
from .transaction import (
    TransactionType,
    Location,
    HardwareProfile,
    NetworkInfo,
    BehaviorSignals,
    DeviceFingerprint,
    UserHistory,
    TransactionContext,
)
from .assessment import (
    RiskLevel,
    RecommendedAction,
    FactorCategory,
    FraudFactor,
    RiskAssessment,
)
from .patterns import FraudRule, FraudPattern, RuleUpdate, PatternUpdate
from .alert import (
    AlertStatus,
    AlertType,
    AlertSeverity,
    ResolutionAction,
    AlertResolution,
    FraudAlert,
)
from .analytics import FactorStats, PatternStats, BreakdownEntry, AnalyticsSnapshot

__all__ = [
    # Base models
    "BaseModel",
    "FrozenModel",

    # Transaction context
    "TransactionType",
    "Location",
    "HardwareProfile",
    "NetworkInfo",
    "BehaviorSignals",
    "DeviceFingerprint",
    "UserHistory",
    "TransactionContext",

    # Assessment output
    "RiskLevel",
    "RecommendedAction",
    "FactorCategory",
    "FraudFactor",
    "RiskAssessment",

    # Patterns and rules
    "FraudRule",
    "FraudPattern",
    "RuleUpdate",
    "PatternUpdate",

    # Alerts
    "AlertStatus",
    "AlertType",
    "AlertSeverity",
    "ResolutionAction",
    "AlertResolution",
    "FraudAlert",

    # Analytics
    "FactorStats",
    "PatternStats",
    "BreakdownEntry",
    "AnalyticsSnapshot",
]
