"""
Tests for exception handling and error responses.
"""
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from orderfeed.core.exceptions import (
    AppException,
    BackendException,
    ConfigurationException,
    ExternalServiceException,
    InvalidSubscriptionException,
    NotFoundException,
    OrderNotFoundException,
    ValidationException,
    register_exception_handlers,
)


class TestAppException:
    """Tests for base AppException class."""

    def test_default_values(self):
        """Test default exception values."""
        exc = AppException()
        assert exc.status_code == 500
        assert exc.error_code == "INTERNAL_ERROR"
        assert exc.message == "An unexpected error occurred"
        assert exc.details is None

    def test_custom_message(self):
        """Test exception with custom message."""
        exc = AppException(message="Custom error message")
        assert exc.message == "Custom error message"
        assert str(exc) == "Custom error message"

    def test_custom_error_code(self):
        exc = AppException(error_code="CUSTOM")
        assert exc.error_code == "CUSTOM"

    def test_to_response(self):
        """Test conversion to error response."""
        exc = AppException(message="Test error", details={"key": "value"})
        response = exc.to_response(request_id="test-req-123")

        assert response.error.code == "INTERNAL_ERROR"
        assert response.error.message == "Test error"
        assert response.error.status_code == 500
        assert response.error.request_id == "test-req-123"
        assert response.error.details == {"key": "value"}
        assert "Z" in response.error.timestamp  # ISO format with Z suffix


class TestValidationException:
    """Tests for ValidationException and its subclasses."""

    def test_default_values(self):
        exc = ValidationException()
        assert exc.status_code == 400
        assert exc.error_code == "VALIDATION_ERROR"

    def test_invalid_subscription(self):
        """Test InvalidSubscriptionException."""
        exc = InvalidSubscriptionException("admin", "X")
        assert exc.status_code == 400
        assert exc.error_code == "INVALID_SUBSCRIPTION"
        assert "admin" in exc.message
        assert exc.details == {"kind": "admin", "key": "X"}
        assert isinstance(exc, ValidationException)


class TestNotFoundException:
    """Tests for NotFoundException and its subclasses."""

    def test_base_not_found(self):
        exc = NotFoundException()
        assert exc.status_code == 404
        assert exc.error_code == "NOT_FOUND"

    def test_order_not_found(self):
        """Test OrderNotFoundException."""
        exc = OrderNotFoundException("order-abc")
        assert exc.status_code == 404
        assert exc.error_code == "ORDER_NOT_FOUND"
        assert "order-abc" in exc.message
        assert exc.details == {"order_id": "order-abc"}


class TestExternalServiceExceptions:
    """Tests for external service exceptions."""

    def test_external_service_exception(self):
        exc = ExternalServiceException()
        assert exc.status_code == 502
        assert exc.error_code == "EXTERNAL_SERVICE_ERROR"

    def test_backend_exception(self):
        """Test BackendException."""
        exc = BackendException(message="Appwrite timeout", status_code=503, backend_type="general_unknown")
        assert exc.status_code == 502
        assert exc.error_code == "BACKEND_ERROR"
        assert exc.backend_status == 503
        assert exc.details == {"backend_status": 503, "backend_type": "general_unknown"}

    def test_backend_exception_defaults(self):
        exc = BackendException()
        assert exc.message == "Order backend unavailable"
        assert exc.backend_status is None


class TestConfigurationException:
    """Tests for ConfigurationException."""

    def test_configuration_exception(self):
        exc = ConfigurationException(message="Missing APPWRITE_API_KEY")
        assert exc.status_code == 500
        assert exc.error_code == "CONFIGURATION_ERROR"
        assert "APPWRITE_API_KEY" in exc.message


class TestExceptionHandlerRegistration:
    """Tests for exception handler registration."""

    def test_register_handlers(self):
        """Test that handlers are registered correctly."""
        app = FastAPI()
        register_exception_handlers(app)

        assert AppException in app.exception_handlers
        assert Exception in app.exception_handlers

    @pytest.mark.asyncio
    async def test_app_exception_response(self):
        """AppExceptions are rendered with the standard error body."""
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/orders/{order_id}")
        async def get_order(order_id: str):
            raise OrderNotFoundException(order_id)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/orders/O1")

        assert response.status_code == 404
        body = response.json()
        assert body["error"]["code"] == "ORDER_NOT_FOUND"
        assert body["error"]["details"] == {"order_id": "O1"}
        assert response.headers["X-Request-ID"] == body["error"]["request_id"]
