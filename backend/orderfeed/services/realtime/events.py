"""
Change events delivered to realtime subscribers.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence, Union


class ChangeType(str, Enum):
    """Kind of change detected for an order."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class ChangeEvent:
    """One detected change of an order snapshot."""

    type: ChangeType
    order: dict
    is_available: Optional[bool] = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"type": self.type.value, "order": self.order}
        if self.is_available is not None:
            data["isAvailable"] = self.is_available
        return data

    def to_message(self) -> dict:
        """WebSocket message pushed to connected clients."""
        message: dict[str, Any] = {
            "type": "order_event",
            "event": self.type.value,
            "order": self.order,
        }
        if self.is_available is not None:
            message["isAvailable"] = self.is_available
        return message


EventCallback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


def classify_events(events: Any) -> ChangeType:
    """
    Classify a raw backend event envelope's lifecycle tags.

    A creation tag wins over everything else, then deletion; anything else,
    including a malformed tag list, is an update.
    """
    if not isinstance(events, Sequence) or isinstance(events, str):
        return ChangeType.UPDATE

    tags = [e for e in events if isinstance(e, str)]
    if any(".create" in e for e in tags):
        return ChangeType.CREATE
    if any(".delete" in e for e in tags):
        return ChangeType.DELETE
    return ChangeType.UPDATE
