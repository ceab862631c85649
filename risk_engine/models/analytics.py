"""Read-only analytics snapshot models."""

from datetime import datetime
from typing import List

from pydantic import Field

from .base import FrozenModel


class FactorStats(FrozenModel):
    """Running statistics for one factor name."""

    factor: str
    count: int
    mean_impact: float


class PatternStats(FrozenModel):
    """How often a pattern produced a factor."""

    pattern: str
    count: int


class BreakdownEntry(FrozenModel):
    """Transactions and mean risk score for one bucket of a breakdown."""

    key: str
    transactions: int
    mean_risk_score: float


class AnalyticsSnapshot(FrozenModel):
    """Point-in-time copy of the analytics counters."""

    total_transactions: int = 0
    flagged_transactions: int = 0
    average_risk_score: float = 0.0
    true_positives: int = 0
    false_positives: int = 0
    detection_rate: float = 0.0
    precision: float = 0.0
    top_risk_factors: List[FactorStats] = Field(default_factory=list)
    pattern_breakdown: List[PatternStats] = Field(default_factory=list)
    hour_breakdown: List[BreakdownEntry] = Field(default_factory=list)
    country_breakdown: List[BreakdownEntry] = Field(default_factory=list)
    device_breakdown: List[BreakdownEntry] = Field(default_factory=list)
    generated_at: datetime
