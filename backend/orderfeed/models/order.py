"""
Order model.

Orders live in the Appwrite ``orders`` collection and travel through this
service as plain document mappings, so two snapshots are equal exactly when
their records are structurally equal.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

# Document attribute names
ORDER_ID = "$id"
CUSTOMER_ID = "customerId"
RESTAURANT_ID = "restaurantId"
DELIVERY_AGENT_ID = "deliveryAgentId"
STATUS = "status"


class OrderStatus(str, enum.Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    PREPARING = "preparing"
    READY = "ready"
    PICKED_UP = "picked_up"
    ON_THE_WAY = "on_the_way"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Forward-only ranking. picked_up / on_the_way are the driver screens' names
# for the out_for_delivery stage and share its rank.
_STATUS_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.ACCEPTED: 1,
    OrderStatus.PREPARING: 2,
    OrderStatus.READY: 3,
    OrderStatus.PICKED_UP: 4,
    OrderStatus.ON_THE_WAY: 4,
    OrderStatus.OUT_FOR_DELIVERY: 4,
    OrderStatus.DELIVERED: 5,
}

CANCELLABLE_STATUSES = frozenset(
    {OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.PREPARING}
)

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """
    Check whether an order may move from ``current`` to ``new``.

    Status only moves forward; ``cancelled`` is reachable from the early
    states and nothing leaves a terminal status.
    """
    if current in TERMINAL_STATUSES:
        return False
    if new == OrderStatus.CANCELLED:
        return current in CANCELLABLE_STATUSES
    return _STATUS_RANK[new] > _STATUS_RANK[current]


def is_available(order: Mapping[str, Any]) -> bool:
    """An order is available when it is ready and no driver has claimed it."""
    return order.get(STATUS) == OrderStatus.READY.value and not order.get(DELIVERY_AGENT_ID)


@dataclass(frozen=True)
class StatusInfo:
    """Display descriptor for an order status."""

    label: str
    color: str
    icon: str

    def to_dict(self) -> dict:
        return {"label": self.label, "color": self.color, "icon": self.icon}


STATUS_INFO: dict[OrderStatus, StatusInfo] = {
    OrderStatus.PENDING: StatusInfo("Pending", "#EF4444", "time"),
    OrderStatus.ACCEPTED: StatusInfo("Accepted", "#F59E0B", "checkmark-circle"),
    OrderStatus.PREPARING: StatusInfo("Preparing", "#8B5CF6", "restaurant"),
    OrderStatus.READY: StatusInfo("Ready for Pickup", "#10B981", "checkmark-done"),
    OrderStatus.PICKED_UP: StatusInfo("Picked Up", "#3B82F6", "bicycle"),
    OrderStatus.ON_THE_WAY: StatusInfo("On The Way", "#3B82F6", "navigate"),
    OrderStatus.OUT_FOR_DELIVERY: StatusInfo("Out for Delivery", "#3B82F6", "bicycle"),
    OrderStatus.DELIVERED: StatusInfo("Delivered", "#22C55E", "checkmark-done-circle"),
    OrderStatus.CANCELLED: StatusInfo("Cancelled", "#DC2626", "close-circle"),
}


def get_status_info(status: Optional[str]) -> StatusInfo:
    """
    Look up the display descriptor for a status.

    Unrecognized values fall back to the ``pending`` descriptor instead of
    raising.
    """
    try:
        return STATUS_INFO[OrderStatus(status)]
    except ValueError:
        logger.debug(f"Unknown order status {status!r}, using pending descriptor")
        return STATUS_INFO[OrderStatus.PENDING]
