"""
Order document model.
"""
from orderfeed.models.order import (
    CUSTOMER_ID,
    DELIVERY_AGENT_ID,
    ORDER_ID,
    RESTAURANT_ID,
    STATUS,
    STATUS_INFO,
    OrderStatus,
    StatusInfo,
    can_transition,
    get_status_info,
    is_available,
)

__all__ = [
    "ORDER_ID",
    "CUSTOMER_ID",
    "RESTAURANT_ID",
    "DELIVERY_AGENT_ID",
    "STATUS",
    "OrderStatus",
    "StatusInfo",
    "STATUS_INFO",
    "can_transition",
    "get_status_info",
    "is_available",
]
