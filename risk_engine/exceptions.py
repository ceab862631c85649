"""Exception hierarchy for the risk assessment engine."""

import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Error code enumeration."""

    # General errors
    INTERNAL_ERROR = "internal_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"

    # Assessment errors
    INVALID_INPUT = "invalid_input"
    COLLABORATOR_UNAVAILABLE = "collaborator_unavailable"
    RULE_EVALUATION_FAULT = "rule_evaluation_fault"

    # Tuning surface errors
    INVALID_CONFIGURATION = "invalid_configuration"
    INVALID_STATE_TRANSITION = "invalid_state_transition"


class RiskEngineException(Exception):
    """Base exception for the risk assessment engine."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[str] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class InputError(RiskEngineException):
    """Transaction context is missing required fields or is malformed.

    No assessment is produced; the caller must deny by policy.
    """

    def __init__(
        self,
        message: str = "Invalid transaction context",
        errors: Optional[List[Dict[str, Any]]] = None,
        details: Optional[str] = None
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_INPUT,
            details=details,
            status_code=422
        )
        self.errors = errors or []


class CollaboratorUnavailable(RiskEngineException):
    """A collaborator lookup timed out or failed."""

    def __init__(self, collaborator: str, cause: Optional[BaseException] = None):
        reason = "timed out" if cause is None or isinstance(cause, (TimeoutError, asyncio.TimeoutError)) else str(cause)
        super().__init__(
            message=f"Collaborator '{collaborator}' unavailable: {reason}",
            error_code=ErrorCode.COLLABORATOR_UNAVAILABLE,
            details=type(cause).__name__ if cause is not None else None,
            status_code=503
        )
        self.collaborator = collaborator
        self.cause = cause


class RuleEvaluationFault(RiskEngineException):
    """A rule condition could not be evaluated against a context."""

    def __init__(self, rule_id: str, message: str):
        super().__init__(
            message=f"Rule '{rule_id}' failed to evaluate: {message}",
            error_code=ErrorCode.RULE_EVALUATION_FAULT,
            status_code=500
        )
        self.rule_id = rule_id


class ConfigurationError(RiskEngineException):
    """Invalid pattern or rule definition, rejected at registration time."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_CONFIGURATION,
            details=details,
            status_code=400
        )
        self.field = field


class NotFoundError(RiskEngineException):
    """Referenced alert, pattern, rule or device does not exist."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} '{identifier}' not found",
            error_code=ErrorCode.NOT_FOUND,
            status_code=404
        )
        self.resource = resource
        self.identifier = identifier


class InvalidStateTransition(RiskEngineException):
    """Alert lifecycle transition is not permitted from its current state."""

    def __init__(self, alert_id: str, current: str, target: str):
        super().__init__(
            message=f"Alert '{alert_id}' cannot move from {current} to {target}",
            error_code=ErrorCode.INVALID_STATE_TRANSITION,
            status_code=409
        )
        self.alert_id = alert_id
        self.current = current
        self.target = target
