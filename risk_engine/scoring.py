"""Risk scoring and decision policy."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Sequence

from .exceptions import ConfigurationError
from .models import FraudFactor, RecommendedAction, RiskLevel

logger = logging.getLogger(__name__)

# Lower bound of each bin, highest first. Bins are half-open [lower, next).
LEVEL_BINS = (
    (80.0, RiskLevel.CRITICAL),
    (60.0, RiskLevel.HIGH),
    (30.0, RiskLevel.MEDIUM),
)


def classify_risk(risk_score: float) -> RiskLevel:
    """Map a 0-100 risk score to its risk level."""
    for lower_bound, level in LEVEL_BINS:
        if risk_score >= lower_bound:
            return level
    return RiskLevel.LOW


def _clamp(value: float, lower: float, upper: float) -> float:
    return min(upper, max(lower, value))


@dataclass(frozen=True)
class ScoreResult:
    risk_score: float
    risk_level: RiskLevel
    confidence: float


class RiskScorer:
    """Combines risk factors into a single weighted-average score."""

    EMPTY_CONFIDENCE = 0.5

    def score(self, factors: Sequence[FraudFactor]) -> ScoreResult:
        """Score a list of factors.

        Args:
            factors: Factors that fired for the transaction

        Returns:
            Risk score in [0, 100], its level, and confidence in [0, 1]
        """
        if not factors:
            return ScoreResult(0.0, RiskLevel.LOW, self.EMPTY_CONFIDENCE)

        total_weight = sum(f.weight for f in factors)
        weighted_impact = sum(f.weight * f.impact for f in factors)
        risk_score = weighted_impact / total_weight if total_weight > 0 else 0.0
        risk_score = round(_clamp(risk_score, 0.0, 100.0), 4)

        return ScoreResult(
            risk_score=risk_score,
            risk_level=classify_risk(risk_score),
            confidence=self._calculate_confidence(factors),
        )

    def _calculate_confidence(self, factors: Sequence[FraudFactor]) -> float:
        mean_weight = sum(f.weight for f in factors) / len(factors)
        mean_impact = sum(f.impact for f in factors) / len(factors)
        return round(_clamp((mean_weight + mean_impact / 100.0) / 2.0, 0.0, 1.0), 4)


class DecisionPolicy:
    """Lookup table from risk level to recommended pipeline action."""

    DEFAULT_TABLE: Dict[RiskLevel, RecommendedAction] = {
        RiskLevel.LOW: RecommendedAction.APPROVE,
        RiskLevel.MEDIUM: RecommendedAction.REVIEW,
        RiskLevel.HIGH: RecommendedAction.REQUIRE_VERIFICATION,
        RiskLevel.CRITICAL: RecommendedAction.BLOCK,
    }

    VERIFICATION_LEVELS = frozenset({RiskLevel.HIGH, RiskLevel.CRITICAL})

    def __init__(self,
                 table: Optional[Mapping[RiskLevel, RecommendedAction]] = None,
                 fallback_action: RecommendedAction = RecommendedAction.REVIEW):
        """Initialize the policy.

        Args:
            table: Action per risk level; must cover every level
            fallback_action: Action when no collaborator could be consulted

        Raises:
            ConfigurationError: If a level has no action
        """
        table = dict(table or self.DEFAULT_TABLE)
        missing = [level.value for level in RiskLevel if level not in table]
        if missing:
            raise ConfigurationError(f"Decision policy has no action for: {', '.join(missing)}", field="table")
        self.table = table
        self.fallback_action = fallback_action

    def decide(self, risk_level: RiskLevel) -> RecommendedAction:
        return self.table[risk_level]

    def requires_verification(self, risk_level: RiskLevel) -> bool:
        return risk_level in self.VERIFICATION_LEVELS

    @staticmethod
    def estimated_loss(amount: float, risk_score: float) -> float:
        """Expected loss if the transaction is fraudulent at the scored likelihood."""
        return round(amount * (risk_score / 100.0), 2)

    def describe(self) -> Dict[str, str]:
        return {level.value: action.value for level, action in self.table.items()}


def dominant_factor(factors: Iterable[FraudFactor]) -> Optional[FraudFactor]:
    """The factor with the highest impact; ties keep the earliest."""
    best: Optional[FraudFactor] = None
    for factor in factors:
        if best is None or factor.impact > best.impact:
            best = factor
    return best
