"""
Application configuration settings.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Order Feed Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/api/v1"

    # Appwrite backend
    APPWRITE_ENDPOINT: str = "https://cloud.appwrite.io/v1"
    APPWRITE_PROJECT_ID: str = ""
    APPWRITE_API_KEY: str = ""  # Server key, REQUIRED in production
    APPWRITE_DATABASE_ID: str = "690eec0400324d34c0fd"
    APPWRITE_ORDERS_COLLECTION_ID: str = "691b75f50037cf051770"
    APPWRITE_TIMEOUT_SECONDS: float = 30.0
    APPWRITE_CONNECT_TIMEOUT_SECONDS: float = 10.0

    # Realtime
    REALTIME_TRANSPORT: str = "native"  # native, polling
    POLL_INTERVAL_LIST_SECONDS: float = 5.0
    POLL_INTERVAL_ORDER_SECONDS: float = 3.0  # single-order channels poll faster
    POLL_LIMIT_RESTAURANT: int = 100
    POLL_LIMIT_CUSTOMER: int = 50
    POLL_LIMIT_DRIVER: int = 50
    REALTIME_RECONNECT_SECONDS: float = 5.0
    REALTIME_HEARTBEAT_SECONDS: float = 20.0

    # WebSocket settings
    WS_MAX_CONNECTIONS_PER_CHANNEL: int = 20

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:8081", "http://localhost:19006"]

    # Observability
    SENTRY_DSN: Optional[str] = None  # Set to enable Sentry error tracking
    METRICS_ENABLED: bool = True
    METRICS_PATH: str = "/metrics"

    @property
    def use_native_realtime(self) -> bool:
        """Whether push transport is available for this deployment."""
        return self.REALTIME_TRANSPORT.lower() == "native"

    def validate_production_settings(self) -> None:
        """Validate critical settings for production environment."""
        import logging
        import warnings

        logger = logging.getLogger(__name__)

        if self.REALTIME_TRANSPORT.lower() not in ("native", "polling"):
            raise ValueError("REALTIME_TRANSPORT must be 'native' or 'polling'")
        if self.POLL_INTERVAL_LIST_SECONDS <= 0 or self.POLL_INTERVAL_ORDER_SECONDS <= 0:
            raise ValueError("Poll intervals must be positive")

        if self.ENVIRONMENT == "production":
            if not self.APPWRITE_PROJECT_ID:
                raise ValueError("APPWRITE_PROJECT_ID must be set in production")
            if not self.APPWRITE_API_KEY:
                raise ValueError("APPWRITE_API_KEY must be set in production")

            # Debug mode check
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")

            insecure_origins = [o for o in self.CORS_ORIGINS if "localhost" in o or "127.0.0.1" in o]
            if insecure_origins:
                warnings.warn(
                    f"CORS_ORIGINS contains localhost entries: {insecure_origins}. "
                    "Consider removing for production.",
                    UserWarning,
                )

            if not self.SENTRY_DSN:
                logger.warning("SENTRY_DSN not configured. Error tracking disabled.")

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
