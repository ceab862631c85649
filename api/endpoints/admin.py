"""Administrative and tuning endpoints.

This module provides endpoints for:
- Alert review and resolution
- Fraud pattern and rule tuning
- Analytics snapshots
- Device enrollment
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import Field

from risk_engine.engine import RiskAssessmentEngine
from risk_engine.models import (
    AlertResolution,
    AlertSeverity,
    AlertStatus,
    AnalyticsSnapshot,
    BaseModel,
    DeviceFingerprint,
    FraudAlert,
    FraudPattern,
    FraudRule,
)
from api.dependencies import get_engine

logger = logging.getLogger(__name__)

router = APIRouter()


class InvestigateRequest(BaseModel):
    """Request body for moving an alert under investigation."""

    actor: str = Field(..., min_length=1, max_length=100)


# Alerts

@router.get("/alerts", response_model=List[FraudAlert], tags=["Alerts"])
async def list_alerts(
    alert_status: Optional[AlertStatus] = Query(None, alias="status"),
    severity: Optional[AlertSeverity] = Query(None),
    user_id: Optional[str] = Query(None, alias="userId"),
    limit: int = Query(100, ge=1, le=1000),
    engine: RiskAssessmentEngine = Depends(get_engine)
) -> List[FraudAlert]:
    """List alerts, newest first."""
    return engine.get_alerts(status=alert_status, severity=severity, user_id=user_id, limit=limit)


@router.get("/alerts/{alert_id}", response_model=FraudAlert, tags=["Alerts"])
async def get_alert(alert_id: str, engine: RiskAssessmentEngine = Depends(get_engine)) -> FraudAlert:
    return engine.get_alert(alert_id)


@router.post("/alerts/{alert_id}/investigate", response_model=FraudAlert, tags=["Alerts"])
async def investigate_alert(
    alert_id: str,
    request: InvestigateRequest,
    engine: RiskAssessmentEngine = Depends(get_engine)
) -> FraudAlert:
    return await engine.mark_investigating(alert_id, request.actor)


@router.post("/alerts/{alert_id}/resolve", response_model=FraudAlert, tags=["Alerts"])
async def resolve_alert(
    alert_id: str,
    resolution: AlertResolution,
    engine: RiskAssessmentEngine = Depends(get_engine)
) -> FraudAlert:
    """Close an alert with an operator resolution.

    A ``false_positive`` action closes the alert as a false positive; every
    other action closes it as resolved. Closed alerts cannot be reopened.
    """
    return await engine.resolve_alert(alert_id, resolution)


# Patterns and rules

@router.get("/patterns", response_model=List[FraudPattern], tags=["Patterns"])
async def list_patterns(engine: RiskAssessmentEngine = Depends(get_engine)) -> List[FraudPattern]:
    return engine.get_patterns()


@router.get("/patterns/{pattern_id}", response_model=FraudPattern, tags=["Patterns"])
async def get_pattern(pattern_id: str, engine: RiskAssessmentEngine = Depends(get_engine)) -> FraudPattern:
    return engine.get_pattern(pattern_id)


@router.post("/patterns", response_model=FraudPattern, status_code=status.HTTP_201_CREATED, tags=["Patterns"])
async def register_pattern(
    pattern: Dict[str, Any] = Body(...),
    engine: RiskAssessmentEngine = Depends(get_engine)
) -> FraudPattern:
    """Register a new fraud pattern. Every rule condition is compiled first."""
    return engine.register_pattern(pattern)


@router.patch("/patterns/{pattern_id}", response_model=FraudPattern, tags=["Patterns"])
async def update_pattern(
    pattern_id: str,
    update: Dict[str, Any] = Body(...),
    engine: RiskAssessmentEngine = Depends(get_engine)
) -> FraudPattern:
    return engine.update_pattern(pattern_id, update)


@router.get("/rules", response_model=List[FraudRule], tags=["Rules"])
async def list_rules(
    pattern_id: Optional[str] = Query(None, alias="patternId"),
    engine: RiskAssessmentEngine = Depends(get_engine)
) -> List[FraudRule]:
    return engine.get_rules(pattern_id)


@router.patch("/rules/{rule_id}", response_model=FraudRule, tags=["Rules"])
async def update_rule(
    rule_id: str,
    update: Dict[str, Any] = Body(...),
    engine: RiskAssessmentEngine = Depends(get_engine)
) -> FraudRule:
    return engine.update_rule(rule_id, update)


# Analytics

@router.get("/analytics", response_model=AnalyticsSnapshot, tags=["Analytics"])
async def get_analytics(engine: RiskAssessmentEngine = Depends(get_engine)) -> AnalyticsSnapshot:
    return engine.get_analytics()


# Devices

@router.post("/devices/{device_id}/enroll", response_model=DeviceFingerprint, tags=["Devices"])
async def enroll_device(device_id: str, engine: RiskAssessmentEngine = Depends(get_engine)) -> DeviceFingerprint:
    logger.info(f"Enrolling device {device_id}")
    return engine.enroll_device(device_id)


@router.post("/devices/{device_id}/revoke", response_model=DeviceFingerprint, tags=["Devices"])
async def revoke_device(device_id: str, engine: RiskAssessmentEngine = Depends(get_engine)) -> DeviceFingerprint:
    logger.info(f"Revoking device {device_id}")
    return engine.revoke_device(device_id)


@router.get("/devices/{device_id}", response_model=DeviceFingerprint, tags=["Devices"])
async def get_device(device_id: str, engine: RiskAssessmentEngine = Depends(get_engine)) -> DeviceFingerprint:
    return engine.get_device(device_id)
