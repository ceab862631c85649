"""Historical transaction summary collaborator.

The engine consumes history through the :class:`HistoryProvider` protocol.
:class:`InMemoryHistoryProvider` is a process-local ledger used for local
runs and tests; production deployments plug in a provider backed by the
ledger store.
"""

import logging
import threading
from collections import defaultdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Protocol

import pandas as pd
from pydantic import Field

from .models import FrozenModel, Location, TransactionContext

logger = logging.getLogger(__name__)


class HistoryWindow(str, Enum):
    """Trailing windows the engine asks about."""
    ONE_HOUR = "1h"
    ONE_DAY = "24h"

    @property
    def duration(self) -> timedelta:
        return {
            HistoryWindow.ONE_HOUR: timedelta(hours=1),
            HistoryWindow.ONE_DAY: timedelta(hours=24),
        }[self]


class HistorySummary(FrozenModel):
    """Summary of a user's transactions inside one trailing window."""

    count: int = Field(0, ge=0)
    avg_amount: float = Field(0.0, ge=0)
    max_amount: float = Field(0.0, ge=0)
    total_amount: float = Field(0.0, ge=0)
    frequent_recipients: List[str] = Field(default_factory=list)
    last_location: Optional[Location] = None
    last_location_at: Optional[datetime] = None

    @classmethod
    def empty(cls) -> "HistorySummary":
        """Defined value for users with no activity in the window."""
        return cls()


class HistoryProvider(Protocol):
    """Contract for historical transaction summary lookups.

    Implementations return :meth:`HistorySummary.empty` for unknown users
    instead of raising.
    """

    async def get_summary(self, user_id: str, window: HistoryWindow, as_of: datetime) -> HistorySummary:
        ...


def _to_utc(value: datetime) -> pd.Timestamp:
    ts = pd.Timestamp(value)
    return ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")


class InMemoryHistoryProvider:
    """Thread-safe in-memory ledger answering windowed summary queries."""

    def __init__(self, top_recipients: int = 5):
        """Initialize provider.

        Args:
            top_recipients: How many recipients to report as frequent
        """
        self.top_recipients = top_recipients
        self._rows: Dict[str, List[Dict]] = defaultdict(list)
        self._lock = threading.Lock()

    def record(self,
               user_id: str,
               amount: float,
               timestamp: datetime,
               recipient: Optional[str] = None,
               transaction_id: Optional[str] = None,
               location: Optional[Location] = None) -> None:
        """Append a completed transaction to the ledger."""
        row = {
            "transaction_id": transaction_id,
            "amount": float(amount),
            "recipient": recipient,
            "timestamp": timestamp,
            "latitude": location.latitude if location is not None else None,
            "longitude": location.longitude if location is not None else None,
            "country": location.country if location is not None else None,
        }
        with self._lock:
            self._rows[user_id].append(row)

    def record_context(self, context: TransactionContext) -> None:
        """Append the transaction described by a context."""
        self.record(
            user_id=context.user_id,
            amount=context.amount,
            timestamp=context.timestamp,
            recipient=context.recipient,
            transaction_id=context.transaction_id,
            location=context.location,
        )

    async def get_summary(self, user_id: str, window: HistoryWindow, as_of: datetime) -> HistorySummary:
        """Summarize a user's transactions in ``(as_of - window, as_of]``.

        Args:
            user_id: User to summarize
            window: Trailing window
            as_of: End of the window, normally the transaction timestamp

        Returns:
            Window summary, empty for unknown users
        """
        with self._lock:
            rows = list(self._rows.get(user_id, ()))

        if not rows:
            return HistorySummary.empty()

        return self._summarize(pd.DataFrame(rows), window, as_of)

    def _summarize(self, df: pd.DataFrame, window: HistoryWindow, as_of: datetime) -> HistorySummary:
        end = _to_utc(as_of)
        start = end - window.duration
        timestamps = pd.to_datetime(df["timestamp"], utc=True)

        in_window = df[(timestamps > start) & (timestamps <= end)]
        if in_window.empty:
            return HistorySummary.empty()

        amounts = in_window["amount"]
        recipients = in_window["recipient"].dropna().value_counts()

        last_location = last_location_at = None
        located = in_window.dropna(subset=["latitude", "longitude"])
        if not located.empty:
            latest = timestamps[located.index].idxmax()
            row = located.loc[latest]
            last_location = Location(
                latitude=float(row["latitude"]),
                longitude=float(row["longitude"]),
                country=row["country"] if isinstance(row["country"], str) else None,
            )
            last_location_at = timestamps[latest].to_pydatetime()

        return HistorySummary(
            count=int(len(in_window)),
            avg_amount=float(amounts.mean()),
            max_amount=float(amounts.max()),
            total_amount=float(amounts.sum()),
            frequent_recipients=[str(r) for r in recipients.head(self.top_recipients).index],
            last_location=last_location,
            last_location_at=last_location_at,
        )

    def clear(self) -> None:
        with self._lock:
            self._rows.clear()
