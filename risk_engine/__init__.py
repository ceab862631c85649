"""Real-time transaction risk assessment engine for P2P payments.

The orchestrating service lives in :mod:`risk_engine.engine`, which also
wires in the monitoring package.
"""

from .exceptions import (
    ErrorCode,
    RiskEngineException,
    InputError,
    CollaboratorUnavailable,
    RuleEvaluationFault,
    ConfigurationError,
    NotFoundError,
    InvalidStateTransition,
)
from .devices import DeviceRiskScorer, DeviceTrustRegistry
from .history import HistoryProvider, HistorySummary, HistoryWindow, InMemoryHistoryProvider
from .factors import RiskFactorAggregator, RiskFactorConfig
from .scoring import DecisionPolicy, RiskScorer, ScoreResult, classify_risk

__version__ = "1.0.0"

__all__ = [
    # Exceptions
    "ErrorCode",
    "RiskEngineException",
    "InputError",
    "CollaboratorUnavailable",
    "RuleEvaluationFault",
    "ConfigurationError",
    "NotFoundError",
    "InvalidStateTransition",

    # Components
    "DeviceRiskScorer",
    "DeviceTrustRegistry",
    "HistoryProvider",
    "HistorySummary",
    "HistoryWindow",
    "InMemoryHistoryProvider",
    "RiskFactorAggregator",
    "RiskFactorConfig",
    "DecisionPolicy",
    "RiskScorer",
    "ScoreResult",
    "classify_risk",
]
