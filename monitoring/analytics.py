"""Analytics aggregation for risk assessments.

Maintains running statistics over assessed transactions for operators:
- Total and flagged transaction counts
- Running mean of the risk score
- Per-factor trigger counts and mean impact
- Per-pattern trigger counts
- Breakdowns by local hour, country and device browser
- Alert feedback (true and false positives) from operator resolutions

The statistics are write-only from the assessment path and are never read
back by it. Nothing is persisted beyond the process lifetime.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from risk_engine.models import (
    AnalyticsSnapshot,
    BreakdownEntry,
    FactorStats,
    FraudFactor,
    PatternStats,
    TransactionContext,
)

logger = logging.getLogger(__name__)


@dataclass
class RunningStat:
    """Incrementally updated count and mean."""
    count: int = 0
    mean: float = 0.0

    def add(self, value: float) -> None:
        self.count += 1
        self.mean += (value - self.mean) / self.count


class KeyedStats:
    """Running statistics per key, each key guarded by its own lock."""

    def __init__(self):
        self._entries: Dict[str, Tuple[threading.Lock, RunningStat]] = {}
        self._guard = threading.Lock()

    def _entry(self, key: str) -> Tuple[threading.Lock, RunningStat]:
        entry = self._entries.get(key)
        if entry is None:
            with self._guard:
                entry = self._entries.setdefault(key, (threading.Lock(), RunningStat()))
        return entry

    def add(self, key: str, value: float) -> None:
        lock, stat = self._entry(key)
        with lock:
            stat.add(value)

    def items(self) -> List[tuple]:
        with self._guard:
            entries = list(self._entries.items())
        result = []
        for key, (lock, stat) in entries:
            with lock:
                result.append((key, RunningStat(stat.count, stat.mean)))
        return result


def _device_family(context: TransactionContext) -> str:
    browser = (context.device.browser or "").strip()
    return browser.split()[0].lower() if browser else "unknown"


class AnalyticsAggregator:
    """Rolling observability statistics over assessments."""

    def __init__(self,
                 flagged_threshold: float = 30.0,
                 clock: Optional[Callable[[], datetime]] = None):
        """Initialize aggregator.

        Args:
            flagged_threshold: Risk score at or above which a transaction counts as flagged
            clock: Source of snapshot timestamps
        """
        self.flagged_threshold = flagged_threshold
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._totals_lock = threading.Lock()
        self._total_transactions = 0
        self._flagged_transactions = 0
        self._risk_score = RunningStat()

        self._feedback_lock = threading.Lock()
        self._true_positives = 0
        self._false_positives = 0

        self._factors = KeyedStats()
        self._patterns = KeyedStats()
        self._hours = KeyedStats()
        self._countries = KeyedStats()
        self._devices = KeyedStats()

    def record(self, context: TransactionContext, risk_score: float, factors: Sequence[FraudFactor]) -> None:
        """Record one completed assessment.

        Args:
            context: Assessed transaction
            risk_score: Final risk score
            factors: Factors that fired
        """
        with self._totals_lock:
            self._total_transactions += 1
            if risk_score >= self.flagged_threshold:
                self._flagged_transactions += 1
            self._risk_score.add(risk_score)

        for factor in factors:
            self._factors.add(factor.name, factor.impact)
            if "pattern_id" in factor.evidence:
                self._patterns.add(factor.name, factor.impact)

        self._hours.add(f"{context.timestamp.hour:02d}", risk_score)
        country = context.location.country if context.location and context.location.country else "unknown"
        self._countries.add(country, risk_score)
        self._devices.add(_device_family(context), risk_score)

    def record_resolution(self, false_positive: bool) -> None:
        """Record operator feedback from an alert resolution."""
        with self._feedback_lock:
            if false_positive:
                self._false_positives += 1
            else:
                self._true_positives += 1

    def snapshot(self) -> AnalyticsSnapshot:
        """Point-in-time copy of all statistics."""
        with self._totals_lock:
            total = self._total_transactions
            flagged = self._flagged_transactions
            average = self._risk_score.mean

        with self._feedback_lock:
            true_positives = self._true_positives
            false_positives = self._false_positives

        reviewed = true_positives + false_positives

        top_factors = sorted(
            (FactorStats(factor=name, count=stat.count, mean_impact=round(stat.mean, 4))
             for name, stat in self._factors.items()),
            key=lambda s: (-s.count, s.factor),
        )
        patterns = sorted(
            (PatternStats(pattern=name, count=stat.count) for name, stat in self._patterns.items()),
            key=lambda s: (-s.count, s.pattern),
        )

        return AnalyticsSnapshot(
            total_transactions=total,
            flagged_transactions=flagged,
            average_risk_score=round(average, 4),
            true_positives=true_positives,
            false_positives=false_positives,
            detection_rate=round(flagged / total, 4) if total else 0.0,
            precision=round(true_positives / reviewed, 4) if reviewed else 0.0,
            top_risk_factors=top_factors,
            pattern_breakdown=patterns,
            hour_breakdown=self._breakdown(self._hours),
            country_breakdown=self._breakdown(self._countries),
            device_breakdown=self._breakdown(self._devices),
            generated_at=self._clock(),
        )

    @staticmethod
    def _breakdown(stats: KeyedStats) -> List[BreakdownEntry]:
        return sorted(
            (BreakdownEntry(key=key, transactions=stat.count, mean_risk_score=round(stat.mean, 4))
             for key, stat in stats.items()),
            key=lambda e: e.key,
        )
