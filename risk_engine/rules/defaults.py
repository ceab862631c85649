"""Default fraud pattern catalogue."""

from typing import List

from ..models import FraudPattern, FraudRule, RiskLevel


def build_default_patterns() -> List[FraudPattern]:
    """Build the patterns registered on a fresh engine, in evaluation order."""
    return [
        FraudPattern(
            id="high_amount_velocity",
            name="High Amount Velocity",
            description="Large transfers sent in quick succession",
            risk_level=RiskLevel.HIGH,
            rules=[
                FraudRule(
                    id="amount_velocity_check",
                    name="Large amount with recent burst",
                    condition="amount > 1000 AND history.count_1h > 3",
                    weight=0.8,
                    threshold=0.7,
                ),
            ],
        ),
        FraudPattern(
            id="structuring",
            name="Structuring",
            description="Repeated transfers just under the reporting threshold",
            risk_level=RiskLevel.CRITICAL,
            rules=[
                FraudRule(
                    id="structuring_check",
                    name="Near-threshold amounts within a day",
                    condition="amount >= 9000 AND amount < 10000 AND history.count_24h > 5",
                    weight=0.9,
                    threshold=0.8,
                ),
            ],
        ),
        FraudPattern(
            id="large_transfer",
            name="Large Transfer",
            description="Unusually large transfers or transfers to blocked recipients",
            risk_level=RiskLevel.MEDIUM,
            rules=[
                FraudRule(
                    id="large_amount_check",
                    name="Amount above large transfer limit",
                    condition="amount > 5000",
                    weight=0.4,
                    threshold=0.3,
                ),
                FraudRule(
                    id="recipient_blacklist_check",
                    name="Recipient on blocklist",
                    condition="recipient IN []",
                    weight=0.8,
                    threshold=0.7,
                ),
            ],
        ),
    ]
