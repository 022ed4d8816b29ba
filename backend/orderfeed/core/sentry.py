"""
Sentry integration for error tracking.

Features:
- Automatic exception capture for the HTTP layer
- Manual capture for failures inside realtime delivery
- Custom tags for channel / transport
"""

import logging
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.httpx import HttpxIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from orderfeed.core.config import settings

logger = logging.getLogger(__name__)

_initialized = False


def init_sentry() -> bool:
    """
    Initialize Sentry SDK.

    Call this once during application startup.

    Returns:
        True if Sentry was initialized, False otherwise.
    """
    global _initialized

    dsn = settings.SENTRY_DSN
    if not dsn:
        logger.info("SENTRY_DSN not configured, error tracking disabled")
        return False

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=settings.ENVIRONMENT,
            release=f"{settings.APP_NAME}@{settings.APP_VERSION}",
            traces_sample_rate=0.1 if settings.ENVIRONMENT == "production" else 1.0,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                HttpxIntegration(),
                LoggingIntegration(
                    level=logging.INFO,
                    event_level=logging.ERROR,
                ),
            ],
            send_default_pii=False,
            before_send_transaction=_before_send_transaction,
            max_breadcrumbs=50,
            attach_stacktrace=True,
        )

        _initialized = True
        logger.info(f"Sentry initialized for {settings.ENVIRONMENT} environment")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False


def _before_send_transaction(event: dict, hint: dict) -> Optional[dict]:
    """Skip health check and metrics transactions."""
    transaction_name = event.get("transaction", "")
    if any(path in transaction_name for path in ["/health", "/metrics", "/docs"]):
        return None

    return event


def capture_exception(
    error: Exception,
    extra: Optional[dict] = None,
    tags: Optional[dict] = None,
) -> None:
    """
    Capture exception and send to Sentry.

    Args:
        error: Exception to capture
        extra: Additional context data
        tags: Tags for filtering
    """
    if not _initialized:
        return

    with sentry_sdk.new_scope() as scope:
        for key, value in (extra or {}).items():
            scope.set_extra(key, value)
        for key, value in (tags or {}).items():
            scope.set_tag(key, str(value))

        sentry_sdk.capture_exception(error)
