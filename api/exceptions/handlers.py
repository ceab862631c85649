"""Exception handlers for the risk engine API."""

import logging
import traceback
import uuid
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings
from risk_engine.exceptions import ErrorCode, InputError, RiskEngineException
from .models import VALIDATION_ERROR, ErrorResponse, ValidationErrorDetail

logger = logging.getLogger(__name__)


def create_error_response(
    request: Request,
    error_code: str,
    message: str,
    details: Optional[str] = None,
    validation_errors: Optional[List[ValidationErrorDetail]] = None,
    debug_info: Optional[Dict[str, Any]] = None
) -> ErrorResponse:
    """Create a standardized error response.

    Args:
        request: FastAPI request object
        error_code: Error code
        message: Error message
        details: Additional details
        validation_errors: Validation error details
        debug_info: Debug information (only in debug mode)

    Returns:
        Error response model
    """
    request_id = getattr(request.state, 'request_id', str(uuid.uuid4()))

    return ErrorResponse(
        error_code=error_code,
        message=message,
        details=details,
        validation_errors=validation_errors,
        request_id=request_id,
        path=str(request.url.path),
        method=request.method,
        debug_info=debug_info if get_settings().debug else None
    )


def _json(status_code: int, error_response: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(exclude_none=True, mode='json')
    )


async def risk_engine_exception_handler(request: Request, exc: RiskEngineException) -> JSONResponse:
    """Handle risk engine exceptions."""

    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{type(exc).__name__}: {exc.message}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method
        }
    )

    validation_errors = None
    if isinstance(exc, InputError) and exc.errors:
        validation_errors = [ValidationErrorDetail(**error) for error in exc.errors]

    # 5xx responses carry no engine detail
    if exc.status_code >= 500:
        error_response = create_error_response(
            request=request,
            error_code=exc.error_code.value,
            message="The risk engine could not complete the request"
        )
    else:
        error_response = create_error_response(
            request=request,
            error_code=exc.error_code.value,
            message=exc.message,
            details=exc.details,
            validation_errors=validation_errors
        )

    return _json(exc.status_code, error_response)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""

    logger.warning(
        f"HTTP Exception: {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method
        }
    )

    error_code_map = {
        404: ErrorCode.NOT_FOUND.value,
        409: ErrorCode.CONFLICT.value,
    }

    error_response = create_error_response(
        request=request,
        error_code=error_code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR.value),
        message=str(exc.detail),
        details=f"HTTP {exc.status_code} error"
    )

    return _json(exc.status_code, error_response)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""

    logger.warning(
        f"Validation Error: {len(exc.errors())} validation errors",
        extra={
            "path": request.url.path,
            "method": request.method
        }
    )

    validation_errors = []
    for error in exc.errors():
        loc = error["loc"][1:] if error["loc"] and error["loc"][0] == "body" else error["loc"]
        validation_errors.append(
            ValidationErrorDetail(
                field=".".join(str(part) for part in loc),
                message=error["msg"]
            )
        )

    error_response = create_error_response(
        request=request,
        error_code=VALIDATION_ERROR,
        message="Request validation failed",
        details=f"{len(validation_errors)} validation error(s) found",
        validation_errors=validation_errors
    )

    return _json(status.HTTP_422_UNPROCESSABLE_ENTITY, error_response)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general unhandled exceptions."""

    request_id = getattr(request.state, 'request_id', str(uuid.uuid4()))

    logger.error(
        f"Unhandled Exception: {str(exc)}",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__
        },
        exc_info=True
    )

    debug_info = None
    if get_settings().debug:
        debug_info = {
            "exception_type": type(exc).__name__,
            "traceback": traceback.format_exc()
        }

    error_response = create_error_response(
        request=request,
        error_code=ErrorCode.INTERNAL_ERROR.value,
        message="An internal server error occurred",
        debug_info=debug_info
    )

    return _json(status.HTTP_500_INTERNAL_SERVER_ERROR, error_response)


def setup_exception_handlers(app: FastAPI) -> None:
    """Setup all exception handlers for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(RiskEngineException, risk_engine_exception_handler)

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Catch-all
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers configured successfully")
