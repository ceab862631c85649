"""Exception handling module for the risk engine API."""

from .handlers import setup_exception_handlers, create_error_response
from .models import ErrorResponse, ValidationErrorDetail, VALIDATION_ERROR

__all__ = [
    "setup_exception_handlers",
    "create_error_response",
    "ErrorResponse",
    "ValidationErrorDetail",
    "VALIDATION_ERROR",
]
