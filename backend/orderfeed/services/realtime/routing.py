"""
Channel identity and per-role event filtering.

Every subscription is a (kind, key) pair. Which events a channel sees, and
how they are enriched, depends only on the kind, so the rules live in one
pure function shared by both transports.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from orderfeed.core.exceptions import InvalidSubscriptionException
from orderfeed.models.order import (
    CUSTOMER_ID,
    DELIVERY_AGENT_ID,
    RESTAURANT_ID,
    is_available,
)
from orderfeed.services.realtime.events import ChangeEvent


class SubscriptionKind(str, Enum):
    """Role a channel is scoped to."""

    RESTAURANT = "restaurant"
    DRIVER = "driver"
    CUSTOMER = "customer"
    ORDER = "order"


@dataclass(frozen=True)
class Channel:
    """A logical subscription scope, e.g. ``driver-D1``."""

    kind: SubscriptionKind
    key: str

    @classmethod
    def parse(cls, kind: str, key: str) -> "Channel":
        """Build a channel from untrusted input."""
        try:
            parsed = SubscriptionKind(kind)
        except ValueError:
            raise InvalidSubscriptionException(kind, key)
        if not key or not key.strip():
            raise InvalidSubscriptionException(kind, key)
        return cls(kind=parsed, key=key)

    @property
    def id(self) -> str:
        return f"{self.kind.value}-{self.key}"

    @property
    def is_list(self) -> bool:
        return self.kind != SubscriptionKind.ORDER

    def __str__(self) -> str:
        return self.id


def route_event(channel: Channel, event: ChangeEvent) -> Optional[ChangeEvent]:
    """
    Decide whether ``event`` belongs on ``channel``.

    Returns the event to deliver (enriched with ``is_available`` on driver
    channels) or None when the channel must not see it.
    """
    order = event.order

    if channel.kind == SubscriptionKind.RESTAURANT:
        return event if order.get(RESTAURANT_ID) == channel.key else None

    if channel.kind == SubscriptionKind.CUSTOMER:
        return event if order.get(CUSTOMER_ID) == channel.key else None

    if channel.kind == SubscriptionKind.DRIVER:
        available = is_available(order)
        if order.get(DELIVERY_AGENT_ID) == channel.key or available:
            return replace(event, is_available=available)
        return None

    # Single-order transports are already scoped to the document
    return event
