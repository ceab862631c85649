"""Risk factor and risk assessment models."""

from enum import Enum
from typing import Any, Dict, List

from pydantic import Field

from .base import FrozenModel


class RiskLevel(str, Enum):
    """Risk level bins over the 0-100 risk score."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecommendedAction(str, Enum):
    """Action handed to the payment pipeline."""
    APPROVE = "approve"
    REVIEW = "review"
    REQUIRE_VERIFICATION = "require_verification"
    BLOCK = "block"


class FactorCategory(str, Enum):
    """Risk factor categories."""
    TRANSACTION = "transaction"
    BEHAVIORAL = "behavioral"
    DEVICE = "device"
    LOCATION = "location"
    TEMPORAL = "temporal"
    NETWORK = "network"


class FraudFactor(FrozenModel):
    """An atomic, named contributor to a transaction's risk score."""

    name: str = Field(..., min_length=1)
    description: str = ""
    category: FactorCategory
    weight: float = Field(..., ge=0.0, le=1.0)
    impact: float = Field(..., ge=0.0, le=100.0)
    evidence: Dict[str, Any] = Field(default_factory=dict)


class RiskAssessment(FrozenModel):
    """Outcome of one transaction risk assessment."""

    transaction_id: str
    risk_score: float = Field(..., ge=0.0, le=100.0)
    risk_level: RiskLevel
    confidence: float = Field(..., ge=0.0, le=1.0)
    factors: List[FraudFactor] = Field(default_factory=list)
    recommended_action: RecommendedAction
    verification_required: bool
    estimated_loss: float = Field(..., ge=0.0)
    processing_time: float = Field(..., ge=0.0, description="Processing time in milliseconds")
    unavailable_collaborators: List[str] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """True when at least one collaborator lookup did not return."""
        return bool(self.unavailable_collaborators)
