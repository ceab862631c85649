"""Fraud alert models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from .assessment import FraudFactor, RecommendedAction
from .base import BaseModel


class AlertStatus(str, Enum):
    """Alert lifecycle states. ``resolved`` and ``false_positive`` are terminal."""
    ACTIVE = "active"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"

    @property
    def is_terminal(self) -> bool:
        return self in (AlertStatus.RESOLVED, AlertStatus.FALSE_POSITIVE)


class AlertType(str, Enum):
    """Alert classification derived from the contributing factors."""
    DEVICE_ANOMALY = "device_anomaly"
    LOCATION_ANOMALY = "location_anomaly"
    UNUSUAL_PATTERN = "unusual_pattern"
    SUSPICIOUS_TRANSACTION = "suspicious_transaction"


class AlertSeverity(str, Enum):
    """Alert severity levels."""
    HIGH = "high"
    CRITICAL = "critical"


class ResolutionAction(str, Enum):
    """Outcome recorded by the operator closing an alert."""
    CONFIRMED_FRAUD = "confirmed_fraud"
    ACCOUNT_RESTRICTED = "account_restricted"
    NO_ACTION = "no_action"
    FALSE_POSITIVE = "false_positive"


class AlertResolution(BaseModel):
    """Explicit operator resolution of an alert."""

    resolved_by: str = Field(..., min_length=1, max_length=100)
    action: ResolutionAction
    notes: Optional[str] = Field(None, max_length=2000)
    resolved_at: Optional[datetime] = None


class FraudAlert(BaseModel):
    """Alert raised for a high or critical risk assessment."""

    id: str
    type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    transaction_id: str
    user_id: str
    risk_score: float = Field(..., ge=0.0, le=100.0)
    status: AlertStatus = AlertStatus.ACTIVE
    recommended_action: RecommendedAction
    auto_resolved: bool = False
    factors: List[FraudFactor] = Field(default_factory=list)
    evidence: Dict[str, Any] = Field(default_factory=dict)
    investigated_by: Optional[str] = None
    resolution: Optional[AlertResolution] = None
