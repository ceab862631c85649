"""Risk factor aggregation.

This module assembles the independent risk factors for a transaction, in a
fixed order so that identical inputs always produce identical factor lists:
- Amount relative to the user's historical maximum
- Transaction velocity in the trailing hour
- Recipient, merchant or country outside the user's frequent set
- Rapid location change since the user's last located transaction
- VPN or proxy on the device network
- Device Trust Registry score
- Night-time activity in the user's local time
- Fraud pattern matches, in pattern registration order
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from config import BaseConfig
from .models import FactorCategory, FraudFactor
from .rules import EngineSnapshot, EvaluationContext, PatternRuleEngine

logger = logging.getLogger(__name__)


class RiskFactorConfig(BaseModel):
    """Thresholds, impacts and weights for the atomic risk factors."""

    # Amount
    amount_ratio_threshold: float = Field(default=1.5, gt=1.0)
    amount_impact_per_ratio: float = Field(default=25.0, gt=0)
    amount_weight: float = Field(default=0.7, ge=0.0, le=1.0)

    # Velocity
    velocity_cutoff: int = Field(default=5, ge=0)
    velocity_impact_per_txn: float = Field(default=10.0, gt=0)
    velocity_weight: float = Field(default=0.6, ge=0.0, le=1.0)

    # Location
    location_impact: float = Field(default=60.0, ge=0.0, le=100.0)
    location_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    location_jump_km: float = Field(default=1000.0, gt=0)
    location_jump_impact: float = Field(default=70.0, ge=0.0, le=100.0)
    location_jump_weight: float = Field(default=0.6, ge=0.0, le=1.0)

    # Network
    anonymizer_impact: float = Field(default=50.0, ge=0.0, le=100.0)
    anonymizer_weight: float = Field(default=0.4, ge=0.0, le=1.0)

    # Device
    device_risk_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    device_weight: float = Field(default=0.8, ge=0.0, le=1.0)

    # Temporal
    night_start_hour: float = Field(default=6.0, ge=0.0, le=24.0)
    night_end_hour: float = Field(default=22.0, ge=0.0, le=24.0)
    temporal_impact: float = Field(default=40.0, ge=0.0, le=100.0)
    temporal_weight: float = Field(default=0.3, ge=0.0, le=1.0)

    @classmethod
    def from_settings(cls, settings: BaseConfig) -> "RiskFactorConfig":
        """Build factor configuration from application settings."""
        return cls(**{name: getattr(settings, name) for name in cls.model_fields})


class RiskFactorAggregator:
    """Assembles risk factors for a transaction."""

    def __init__(self, rule_engine: PatternRuleEngine, config: Optional[RiskFactorConfig] = None):
        """Initialize the aggregator.

        Args:
            rule_engine: Pattern/Rule Engine consulted for pattern factors
            config: Factor configuration
        """
        self.rule_engine = rule_engine
        self.config = config or RiskFactorConfig()

    def assemble(self, ctx: EvaluationContext, snapshot: Optional[EngineSnapshot] = None) -> List[FraudFactor]:
        """Assemble all factors that fire for a context.

        Args:
            ctx: Transaction context with resolved collaborator signals
            snapshot: Pattern definitions captured at the start of the assessment

        Returns:
            Factors in their fixed evaluation order
        """
        factors: List[FraudFactor] = []

        for build in (
            self._amount_factor,
            self._velocity_factor,
            self._location_factor,
            self._location_jump_factor,
            self._network_factor,
            self._device_factor,
            self._temporal_factor,
        ):
            factor = build(ctx)
            if factor is not None:
                factors.append(factor)

        for match in self.rule_engine.evaluate(ctx, snapshot=snapshot):
            factors.append(match.to_factor())

        return factors

    def _amount_factor(self, ctx: EvaluationContext) -> Optional[FraudFactor]:
        amount = ctx.transaction.amount
        max_amount = ctx.transaction.user_history.max_amount
        if max_amount <= 0 or amount <= self.config.amount_ratio_threshold * max_amount:
            return None

        ratio = amount / max_amount
        return FraudFactor(
            name="Unusual Amount",
            description=f"Amount is {ratio:.1f}x the user's historical maximum",
            category=FactorCategory.TRANSACTION,
            weight=self.config.amount_weight,
            impact=min(100.0, (ratio - 1.0) * self.config.amount_impact_per_ratio),
            evidence={"amount": amount, "historical_max": max_amount, "ratio": round(ratio, 4)},
        )

    def _velocity_factor(self, ctx: EvaluationContext) -> Optional[FraudFactor]:
        count = ctx.count_1h
        if count is None or count <= self.config.velocity_cutoff:
            return None

        return FraudFactor(
            name="High Velocity",
            description=f"{count} transactions in the last hour",
            category=FactorCategory.BEHAVIORAL,
            weight=self.config.velocity_weight,
            impact=min(100.0, count * self.config.velocity_impact_per_txn),
            evidence={"transactions_last_hour": count, "cutoff": self.config.velocity_cutoff},
        )

    def _location_factor(self, ctx: EvaluationContext) -> Optional[FraudFactor]:
        transaction = ctx.transaction
        history = transaction.user_history
        if history.is_new_user:
            return None

        unfamiliar = {}
        if transaction.recipient and history.frequent_recipients \
                and transaction.recipient not in history.frequent_recipients:
            unfamiliar["recipient"] = transaction.recipient
        if transaction.merchant and history.frequent_merchants \
                and transaction.merchant not in history.frequent_merchants:
            unfamiliar["merchant"] = transaction.merchant
        country = transaction.location.country if transaction.location else None
        if country and history.frequent_countries and country not in history.frequent_countries:
            unfamiliar["country"] = country

        if not unfamiliar:
            return None

        return FraudFactor(
            name="New Recipient or Location",
            description=f"Unfamiliar {', '.join(sorted(unfamiliar))} for this user",
            category=FactorCategory.LOCATION,
            weight=self.config.location_weight,
            impact=self.config.location_impact,
            evidence=unfamiliar,
        )

    def _location_jump_factor(self, ctx: EvaluationContext) -> Optional[FraudFactor]:
        distance = ctx.distance_from_last_km
        if distance is None or distance <= self.config.location_jump_km:
            return None

        evidence = {
            "distance_km": round(distance, 1),
            "previous_country": ctx.last_location.country,
            "current_country": ctx.transaction.location.country,
        }
        if ctx.last_location_at is not None:
            elapsed = ctx.transaction.timestamp - ctx.last_location_at
            evidence["hours_since_last"] = round(elapsed.total_seconds() / 3600.0, 2)

        return FraudFactor(
            name="Rapid Location Change",
            description=f"{distance:.0f} km from the previous transaction within 24 hours",
            category=FactorCategory.LOCATION,
            weight=self.config.location_jump_weight,
            impact=self.config.location_jump_impact,
            evidence=evidence,
        )

    def _network_factor(self, ctx: EvaluationContext) -> Optional[FraudFactor]:
        network = ctx.transaction.device.network
        if network is None or not network.is_anonymized:
            return None

        return FraudFactor(
            name="VPN or Proxy",
            description="Traffic routed through an anonymizing network",
            category=FactorCategory.NETWORK,
            weight=self.config.anonymizer_weight,
            impact=self.config.anonymizer_impact,
            evidence={"is_vpn": network.is_vpn, "is_proxy": network.is_proxy, "isp": network.isp},
        )

    def _device_factor(self, ctx: EvaluationContext) -> Optional[FraudFactor]:
        score = ctx.device_score
        if score is None or score <= self.config.device_risk_threshold:
            return None

        return FraudFactor(
            name="Suspicious Device",
            description=f"Device risk score {score:.2f}",
            category=FactorCategory.DEVICE,
            weight=self.config.device_weight,
            impact=min(100.0, score * 100.0),
            evidence={
                "device_id": ctx.transaction.device.device_id,
                "risk_score": score,
                "is_trusted": ctx.device_trusted,
            },
        )

    def _temporal_factor(self, ctx: EvaluationContext) -> Optional[FraudFactor]:
        hour = ctx.transaction.local_hour
        if self.config.night_start_hour <= hour <= self.config.night_end_hour:
            return None

        return FraudFactor(
            name="Unusual Time",
            description=f"Transaction at {hour:05.2f} local time",
            category=FactorCategory.TEMPORAL,
            weight=self.config.temporal_weight,
            impact=self.config.temporal_impact,
            evidence={"local_hour": round(hour, 4)},
        )
