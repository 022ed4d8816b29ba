"""
Structured logging configuration.

Features:
- JSON logging format for production
- Request ID tracking
- Realtime channel tagging for event delivery
- Performance timing
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from orderfeed.core.config import settings

# Context variables for request / channel tracking
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
channel_id_var: ContextVar[str] = ContextVar("channel_id", default="")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        channel_id = channel_id_var.get()
        if channel_id:
            log_data["channel_id"] = channel_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """Human-readable log formatter for development."""

    def format(self, record: logging.LogRecord) -> str:
        request_id = request_id_var.get()
        channel_id = channel_id_var.get()

        context = ""
        if request_id:
            context += f"[{request_id[:8]}]"
        if channel_id:
            context += f"[{channel_id}]"

        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
        line = (
            f"{timestamp} {record.levelname:8} {context:20} "
            f"{record.name}:{record.funcName}:{record.lineno} - {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
) -> None:
    """
    Configure application logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON format (for production)
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)

    if json_format or not settings.DEBUG:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(HumanFormatter())

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    loggers_config = {
        "orderfeed": level,
        "uvicorn": "INFO",
        "uvicorn.access": "INFO",
        "httpx": "WARNING",
        "websockets": "WARNING",
    }

    for logger_name, logger_level in loggers_config.items():
        logger = logging.getLogger(logger_name)
        logger.setLevel(getattr(logging, logger_level.upper()))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request logging and tracking.

    Assigns a request ID, logs request/response and tracks timing.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(request_id)
        request.state.request_id = request_id

        logger = logging.getLogger("orderfeed.requests")

        logger.info(f"Request started: {request.method} {request.url.path}")

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"Request failed: {request.method} {request.url.path}")
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            f"Request completed: {request.method} {request.url.path} - "
            f"{response.status_code} ({duration_ms:.2f}ms)"
        )

        response.headers["X-Request-ID"] = request_id

        return response
