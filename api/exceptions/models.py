"""Error response models for the risk engine API."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Request validation failures raised by FastAPI before reaching the engine
VALIDATION_ERROR = "validation_error"


class ValidationErrorDetail(BaseModel):
    """Validation error detail."""

    field: str = Field(..., description="Field name that failed validation")
    message: str = Field(..., description="Validation error message")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "field": "amount",
                "message": "Input should be greater than 0",
            }
        }
    )


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[str] = Field(None, description="Additional error details")
    validation_errors: Optional[List[ValidationErrorDetail]] = Field(
        None, description="Validation error details"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Error timestamp"
    )
    request_id: Optional[str] = Field(None, description="Request identifier for tracking")
    path: Optional[str] = Field(None, description="API path where error occurred")
    method: Optional[str] = Field(None, description="HTTP method")

    # Only populated in debug mode
    debug_info: Optional[Dict[str, Any]] = Field(None, description="Debug information")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error_code": "invalid_input",
                "message": "Invalid transaction context: device",
                "validation_errors": [
                    {"field": "device", "message": "Field required"}
                ],
                "timestamp": "2024-01-15T14:30:01Z",
                "request_id": "req_123456789",
                "path": "/api/v1/risk/assess",
                "method": "POST"
            }
        }
    )
