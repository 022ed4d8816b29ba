"""
Prometheus metrics for observability.

Exposes metrics for:
- HTTP request latency and counts
- Realtime subscriptions and delivered change events
- Poll cycles of the fallback transport
- Backend (Appwrite) request health
"""

import time
from functools import wraps
from typing import Callable

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from orderfeed.core.config import settings

# ============================================================
# HTTP Metrics
# ============================================================

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)


# ============================================================
# Realtime Metrics
# ============================================================

REALTIME_SUBSCRIPTIONS_ACTIVE = Gauge(
    "realtime_subscriptions_active",
    "Active realtime channel subscriptions",
    ["kind", "transport"],
)

REALTIME_EVENTS_TOTAL = Counter(
    "realtime_events_total",
    "Change events delivered to subscribers",
    ["kind", "event_type"],
)

REALTIME_CALLBACK_ERRORS = Counter(
    "realtime_callback_errors_total",
    "Subscriber callbacks that raised",
    ["kind"],
)

POLL_CYCLES_TOTAL = Counter(
    "realtime_poll_cycles_total",
    "Poll cycles of the fallback transport",
    ["kind", "status"],
)

POLL_DURATION = Histogram(
    "realtime_poll_duration_seconds",
    "Duration of one fetch-and-diff poll cycle",
    ["kind"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

WS_CONNECTIONS_ACTIVE = Gauge(
    "realtime_ws_connections_active",
    "WebSocket clients attached to realtime channels",
)


# ============================================================
# External Service Metrics
# ============================================================

EXTERNAL_REQUEST_DURATION = Histogram(
    "external_request_duration_seconds",
    "External service request duration",
    ["service", "operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

EXTERNAL_REQUEST_TOTAL = Counter(
    "external_requests_total",
    "Total external service requests",
    ["service", "operation", "status"],
)

SERVICE_HEALTH = Gauge(
    "service_health",
    "External service health (1=healthy, 0=unhealthy)",
    ["service"],
)


# ============================================================
# Application Info
# ============================================================

APP_INFO = Info(
    "app",
    "Application information",
)
APP_INFO.info(
    {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }
)


# ============================================================
# Middleware
# ============================================================


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP request metrics.

    Tracks request duration and count by endpoint and status.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == settings.METRICS_PATH:
            return await call_next(request)

        method = request.method
        endpoint = self._normalize_path(request.url.path)

        start_time = time.perf_counter()
        status_code = "500"
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        finally:
            duration = time.perf_counter() - start_time

            HTTP_REQUEST_DURATION.labels(
                method=method,
                endpoint=endpoint,
                status_code=status_code,
            ).observe(duration)

            HTTP_REQUEST_TOTAL.labels(
                method=method,
                endpoint=endpoint,
                status_code=status_code,
            ).inc()

        return response

    def _normalize_path(self, path: str) -> str:
        """
        Normalize path by replacing dynamic segments with placeholders.

        /api/v1/realtime/status/ready stays as is,
        /api/v1/orders/691b75f50037cf051770 -> /api/v1/orders/{id}
        """
        parts = [p for p in path.split("/") if p]
        normalized = ["{id}" if self._is_id(p) else p for p in parts]
        return "/" + "/".join(normalized) if normalized else "/"

    def _is_id(self, part: str) -> bool:
        """Check if path part is likely an ID."""
        if part.isdigit():
            return True
        # Appwrite IDs are 20 hex characters, UUIDs are 36
        if len(part) >= 20 and all(c.isalnum() or c == "-" for c in part):
            return True
        return False


# ============================================================
# Helper Functions
# ============================================================


def track_external_request(service: str, operation: str):
    """
    Decorator to track external service requests.

    Usage:
        @track_external_request("appwrite", "list_documents")
        async def list_documents(...):
            ...
    """

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
                EXTERNAL_REQUEST_TOTAL.labels(
                    service=service,
                    operation=operation,
                    status="success",
                ).inc()
                return result
            except Exception:
                EXTERNAL_REQUEST_TOTAL.labels(
                    service=service,
                    operation=operation,
                    status="error",
                ).inc()
                raise
            finally:
                duration = time.perf_counter() - start_time
                EXTERNAL_REQUEST_DURATION.labels(
                    service=service,
                    operation=operation,
                ).observe(duration)

        return wrapper

    return decorator


def update_service_health(service: str, healthy: bool) -> None:
    """Record external service health."""
    SERVICE_HEALTH.labels(service=service).set(1 if healthy else 0)


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus exposition endpoint."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
    )
