"""Fraud pattern and rule models plus their partial-update payloads."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .assessment import RiskLevel
from .base import BaseModel


class FraudRule(BaseModel):
    """A single testable condition owned by a pattern."""

    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    condition: str = Field(
        ...,
        min_length=1,
        description="Condition expression over the context schema",
        json_schema_extra={"example": "amount > 1000 AND history.count_1h > 3"}
    )
    weight: float = Field(..., ge=0.0, le=1.0)
    threshold: float = Field(..., gt=0.0, le=1.0)
    is_enabled: bool = True
    trigger_count: int = Field(0, ge=0)
    last_triggered: Optional[datetime] = None


class FraudPattern(BaseModel):
    """A named bundle of rules representing a known fraud signature."""

    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    risk_level: RiskLevel = RiskLevel.MEDIUM
    is_active: bool = True
    rules: List[FraudRule] = Field(default_factory=list)
    frequency: int = Field(0, ge=0)
    last_detected: Optional[datetime] = None


class RuleUpdate(BaseModel):
    """Partial update for a rule. Counters are not writable."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    condition: Optional[str] = Field(None, min_length=1)
    weight: Optional[float] = Field(None, ge=0.0, le=1.0)
    threshold: Optional[float] = Field(None, gt=0.0, le=1.0)
    is_enabled: Optional[bool] = None


class PatternUpdate(BaseModel):
    """Partial update for a pattern. Supplying ``rules`` replaces the rule list."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    risk_level: Optional[RiskLevel] = None
    is_active: Optional[bool] = None
    rules: Optional[List[FraudRule]] = None
