"""
Standardized exception handling.

Provides consistent error responses across all endpoints with:
- Unique error codes for client-side handling
- Request tracking via request_id
- HTTP status code alignment
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorDetail(BaseModel):
    """Standardized error response format."""
    code: str
    message: str
    status_code: int
    timestamp: str
    request_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Wrapper for error responses."""
    error: ErrorDetail


# =============================================================================
# Base Exception Classes
# =============================================================================

class AppException(Exception):
    """Base exception for all application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message or self.message
        self.details = details
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert exception to standardized error response."""
        return ErrorResponse(
            error=ErrorDetail(
                code=self.error_code,
                message=self.message,
                status_code=self.status_code,
                timestamp=datetime.utcnow().isoformat() + "Z",
                request_id=request_id,
                details=self.details,
            )
        )


# =============================================================================
# Client Errors (4xx)
# =============================================================================

class ValidationException(AppException):
    """Invalid input data."""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"
    message = "Invalid input data"


class NotFoundException(AppException):
    """Resource not found."""
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    message = "Resource not found"


class OrderNotFoundException(NotFoundException):
    """Order document not found."""
    error_code = "ORDER_NOT_FOUND"
    message = "Order not found"

    def __init__(self, order_id: str):
        super().__init__(
            message=f"Order with ID '{order_id}' not found",
            details={"order_id": order_id}
        )


class InvalidSubscriptionException(ValidationException):
    """Unknown subscription kind or empty key."""
    error_code = "INVALID_SUBSCRIPTION"

    def __init__(self, kind: str, key: str):
        super().__init__(
            message=f"Cannot subscribe to '{kind}' with key '{key}'",
            details={"kind": kind, "key": key}
        )


# =============================================================================
# External Service Exceptions (5xx)
# =============================================================================

class ExternalServiceException(AppException):
    """External service error."""
    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "EXTERNAL_SERVICE_ERROR"
    message = "External service unavailable"


class BackendException(ExternalServiceException):
    """Appwrite backend error."""
    error_code = "BACKEND_ERROR"
    message = "Order backend unavailable"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        backend_type: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            details={"backend_status": status_code, "backend_type": backend_type},
        )
        self.backend_status = status_code


# =============================================================================
# Configuration Exception
# =============================================================================

class ConfigurationException(AppException):
    """Configuration error - should fail at startup."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "CONFIGURATION_ERROR"
    message = "Application configuration error"


# =============================================================================
# Exception Handler Registration
# =============================================================================

def get_request_id(request: Request) -> str:
    """Extract or generate request ID."""
    return getattr(request.state, "request_id", None) or str(uuid4())


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle all application exceptions with standardized format."""
    request_id = get_request_id(request)
    response = exc.to_response(request_id=request_id)

    return JSONResponse(
        status_code=exc.status_code,
        content=response.model_dump(),
        headers={"X-Request-ID": request_id},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = get_request_id(request)

    logger.exception(f"Unhandled exception: {exc}")

    error = ErrorResponse(
        error=ErrorDetail(
            code="INTERNAL_ERROR",
            message="An unexpected error occurred",
            status_code=500,
            timestamp=datetime.utcnow().isoformat() + "Z",
            request_id=request_id,
        )
    )

    return JSONResponse(
        status_code=500,
        content=error.model_dump(),
        headers={"X-Request-ID": request_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
