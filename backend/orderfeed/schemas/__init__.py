"""
Pydantic schemas for API request/response models.
"""

from orderfeed.schemas.realtime import (
    StatusInfoResponse,
    SubscriptionInfo,
    SubscriptionListResponse,
    TeardownResponse,
)

__all__ = [
    "StatusInfoResponse",
    "SubscriptionInfo",
    "SubscriptionListResponse",
    "TeardownResponse",
]
