"""Transaction context and device fingerprint models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator

from .base import FrozenModel


class TransactionType(str, Enum):
    """Kinds of money movement on the platform."""
    SEND = "send"
    RECEIVE = "receive"
    WITHDRAW = "withdraw"
    DEPOSIT = "deposit"


class Location(FrozenModel):
    """Where the transaction was initiated."""

    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    country: Optional[str] = Field(
        None,
        min_length=2,
        max_length=2,
        description="ISO 3166-1 alpha-2 country code",
        json_schema_extra={"example": "US"}
    )
    city: Optional[str] = Field(None, max_length=100)
    ip_address: Optional[str] = Field(None, max_length=45)

    @field_validator("country")
    @classmethod
    def validate_country(cls, v):
        """Normalise country code to uppercase."""
        return v.upper() if v else v


class HardwareProfile(FrozenModel):
    """Reported device hardware."""

    cores: int = Field(..., ge=0)
    memory: float = Field(..., ge=0, description="Device memory in GB")
    storage: Optional[float] = Field(None, ge=0, description="Storage in GB")


class NetworkInfo(FrozenModel):
    """Network attributes observed for the device."""

    connection_type: Optional[str] = Field(None, json_schema_extra={"example": "wifi"})
    ip_address: Optional[str] = None
    isp: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    is_vpn: bool = False
    is_proxy: bool = False

    @property
    def is_anonymized(self) -> bool:
        """True when traffic is routed through a VPN or proxy."""
        return self.is_vpn or self.is_proxy


class BehaviorSignals(FrozenModel):
    """Raw interaction samples captured on the client."""

    mouse_movement: List[float] = Field(default_factory=list)
    keystroke_timing: List[float] = Field(default_factory=list)
    scroll_pattern: List[float] = Field(default_factory=list)
    click_pattern: List[float] = Field(default_factory=list)


class DeviceFingerprint(FrozenModel):
    """Device fingerprint as seen by the Device Trust Registry.

    ``risk_score``, ``is_trusted`` and the sighting fields are owned by the
    registry. Values supplied by the caller are ignored on upsert.
    """

    device_id: str = Field(..., min_length=1, max_length=128)
    browser: Optional[str] = Field(None, json_schema_extra={"example": "Chrome 126"})
    os: Optional[str] = Field(None, json_schema_extra={"example": "macOS 14"})
    screen_resolution: Optional[str] = None
    timezone: Optional[str] = None
    language: Optional[str] = None
    plugins: List[str] = Field(default_factory=list)
    fonts: List[str] = Field(default_factory=list)
    canvas: Optional[str] = None
    webgl: Optional[str] = None
    audio: Optional[str] = None
    hardware: Optional[HardwareProfile] = None
    network: Optional[NetworkInfo] = None
    behavior: BehaviorSignals = Field(default_factory=BehaviorSignals)

    risk_score: float = Field(0.0, ge=0.0, le=1.0)
    is_trusted: bool = False
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    sighting_count: int = Field(0, ge=0)


class UserHistory(FrozenModel):
    """Lifetime summary of the user's past activity, supplied with the context."""

    total_transactions: int = Field(0, ge=0)
    average_amount: float = Field(0.0, ge=0)
    max_amount: float = Field(0.0, ge=0)
    last_transaction: Optional[datetime] = None
    frequent_recipients: List[str] = Field(default_factory=list)
    frequent_merchants: List[str] = Field(default_factory=list)
    frequent_countries: List[str] = Field(default_factory=list)

    @field_validator("frequent_countries")
    @classmethod
    def validate_countries(cls, v):
        """Normalise country codes to uppercase."""
        return [country.upper() for country in v]

    @property
    def is_new_user(self) -> bool:
        """True when the user has no prior activity."""
        return self.total_transactions == 0


class TransactionContext(FrozenModel):
    """Immutable snapshot of an attempted money movement."""

    transaction_id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        json_schema_extra={"example": "txn_abc123"}
    )
    user_id: str = Field(..., min_length=1, max_length=100, json_schema_extra={"example": "user_456"})
    amount: float = Field(..., gt=0, json_schema_extra={"example": 125.5})
    currency: str = Field(..., min_length=3, max_length=3, json_schema_extra={"example": "USD"})
    type: TransactionType = Field(..., description="Direction of the money movement")
    recipient: Optional[str] = Field(None, max_length=100)
    merchant: Optional[str] = Field(None, max_length=100)
    category: str = Field("general", max_length=50)
    timestamp: datetime = Field(..., description="When the transaction was initiated, in the user's local offset")
    location: Optional[Location] = None
    device: DeviceFingerprint
    user_history: UserHistory = Field(default_factory=UserHistory)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        """Validate currency code format."""
        if not v.isalpha():
            raise ValueError("Currency must be alphabetic")
        return v.upper()

    @property
    def local_hour(self) -> float:
        """Fractional wall-clock hour in the timestamp's own offset."""
        ts = self.timestamp
        return ts.hour + ts.minute / 60.0 + ts.second / 3600.0
