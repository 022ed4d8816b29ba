"""
Realtime API schemas.
"""
from datetime import datetime

from pydantic import BaseModel, Field


class StatusInfoResponse(BaseModel):
    """Display descriptor for an order status."""

    status: str
    label: str
    color: str = Field(..., pattern="^#[0-9A-Fa-f]{6}$")
    icon: str


class SubscriptionInfo(BaseModel):
    """One active realtime channel."""

    channel_id: str
    kind: str
    key: str
    transport: str
    created_at: datetime
    events_delivered: int = 0
    connections: int = 0


class SubscriptionListResponse(BaseModel):
    """Active realtime channels."""

    items: list[SubscriptionInfo]
    total: int
    use_native: bool


class TeardownResponse(BaseModel):
    """Result of tearing down every channel."""

    unsubscribed: int
