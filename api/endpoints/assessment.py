"""Risk assessment endpoint.

The request body is the transaction context. Validation happens inside the
engine so a malformed context surfaces as an ``invalid_input`` error, the
same failure the payment pipeline gets from in-process callers.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from risk_engine.engine import RiskAssessmentEngine
from risk_engine.models import RiskAssessment
from api.dependencies import get_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/risk", tags=["Risk Assessment"])

CONTEXT_EXAMPLE = {
    "transactionId": "txn_abc123",
    "userId": "user_456",
    "amount": 125.5,
    "currency": "USD",
    "type": "send",
    "recipient": "user_789",
    "timestamp": "2024-01-15T14:30:00+01:00",
    "location": {"country": "DE", "city": "Berlin"},
    "device": {
        "deviceId": "dev_001",
        "browser": "Chrome 126",
        "os": "macOS 14",
        "hardware": {"cores": 8, "memory": 16},
        "network": {"connectionType": "wifi"}
    },
    "userHistory": {
        "totalTransactions": 42,
        "averageAmount": 80.0,
        "maxAmount": 300.0,
        "frequentRecipients": ["user_789"],
        "frequentCountries": ["DE"]
    }
}


@router.post("/assess", response_model=RiskAssessment)
async def assess_transaction(
    context: Dict[str, Any] = Body(..., examples=[CONTEXT_EXAMPLE]),
    timeout_ms: Optional[float] = Query(None, gt=0, le=10000, description="Collaborator deadline in milliseconds"),
    engine: RiskAssessmentEngine = Depends(get_engine)
) -> RiskAssessment:
    """Assess the risk of one transaction.

    Returns the risk score, level, recommended pipeline action and the
    contributing factors.
    """
    return await engine.assess_transaction_risk(context, timeout_ms=timeout_ms)
