"""
Snapshot store and diffing for the polling transport.

Each channel keeps the last materialized view it fetched. A fresh fetch is
compared against it to synthesize create / update / delete events.
"""
from typing import Any, Optional, Union

from orderfeed.models.order import ORDER_ID
from orderfeed.services.realtime.events import ChangeEvent, ChangeType


class _NoSnapshot:
    """Sentinel for a channel that has never completed a fetch."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_SNAPSHOT"

    def __bool__(self) -> bool:
        return False


NO_SNAPSHOT: Any = _NoSnapshot()

Snapshot = Union[dict, list[dict]]


class SnapshotStore:
    """
    Last known state per channel.

    Entries are created by the first successful poll, replaced wholesale on
    every cycle and discarded on unsubscribe. Two channels never share an
    entry, even when their queries overlap.
    """

    def __init__(self):
        self._snapshots: dict[str, Snapshot] = {}

    def get(self, channel_id: str) -> Any:
        return self._snapshots.get(channel_id, NO_SNAPSHOT)

    def set(self, channel_id: str, snapshot: Snapshot) -> None:
        self._snapshots[channel_id] = snapshot

    def discard(self, channel_id: str) -> None:
        self._snapshots.pop(channel_id, None)

    def clear(self) -> None:
        self._snapshots.clear()

    def __contains__(self, channel_id: str) -> bool:
        return channel_id in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)


def diff_orders(old: Any, new: list[dict]) -> list[ChangeEvent]:
    """
    Compare two order lists keyed by document id.

    Creates and updates follow the order of ``new``; deletes follow the order
    of ``old`` and carry the old copy, since the deleted order can no longer
    be fetched. Any field difference counts as an update.
    """
    old_orders: list[dict] = old if old is not NO_SNAPSHOT else []
    old_by_id = {o.get(ORDER_ID): o for o in old_orders}
    new_ids = {o.get(ORDER_ID) for o in new}

    events: list[ChangeEvent] = []
    for order in new:
        previous = old_by_id.get(order.get(ORDER_ID))
        if previous is None:
            events.append(ChangeEvent(type=ChangeType.CREATE, order=order))
        elif previous != order:
            events.append(ChangeEvent(type=ChangeType.UPDATE, order=order))

    for order in old_orders:
        if order.get(ORDER_ID) not in new_ids:
            events.append(ChangeEvent(type=ChangeType.DELETE, order=order))

    return events


def diff_order(old: Any, new: Optional[dict]) -> Optional[ChangeEvent]:
    """
    Compare two snapshots of a single order.

    ``new`` is None when the order could not be found anymore.
    """
    if new is None:
        if old is NO_SNAPSHOT:
            return None
        return ChangeEvent(type=ChangeType.DELETE, order=old)
    if old is NO_SNAPSHOT:
        return ChangeEvent(type=ChangeType.CREATE, order=new)
    if old != new:
        return ChangeEvent(type=ChangeType.UPDATE, order=new)
    return None
