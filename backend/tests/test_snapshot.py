"""
Tests for the snapshot store and snapshot diffing.
"""
from orderfeed.services.realtime.events import ChangeType
from orderfeed.services.realtime.snapshot import (
    NO_SNAPSHOT,
    SnapshotStore,
    diff_order,
    diff_orders,
)

from conftest import make_order


def _summary(events):
    return [(e.type.value, e.order["$id"]) for e in events]


class TestSnapshotStore:
    """Tests for SnapshotStore."""

    def test_missing_channel(self):
        store = SnapshotStore()
        assert store.get("restaurant-R1") is NO_SNAPSHOT
        assert "restaurant-R1" not in store

    def test_empty_list_is_a_snapshot(self):
        """An empty fetch is distinct from never having fetched."""
        store = SnapshotStore()
        store.set("restaurant-R1", [])

        assert store.get("restaurant-R1") == []
        assert store.get("restaurant-R1") is not NO_SNAPSHOT
        assert len(store) == 1

    def test_discard_and_clear(self):
        store = SnapshotStore()
        store.set("a", [])
        store.set("b", [])

        store.discard("a")
        store.discard("missing")
        assert "a" not in store
        assert len(store) == 1

        store.clear()
        assert len(store) == 0

    def test_sentinel_is_falsy_singleton(self):
        assert not NO_SNAPSHOT
        assert repr(NO_SNAPSHOT) == "NO_SNAPSHOT"


class TestDiffOrders:
    """Tests for list diffing."""

    def test_first_fetch_is_all_creates(self):
        new = [make_order("A"), make_order("B")]
        assert _summary(diff_orders(NO_SNAPSHOT, new)) == [("create", "A"), ("create", "B")]

    def test_update_create_delete(self):
        """Creates/updates follow the new fetch, deletes follow the old snapshot."""
        old = [make_order("A", status="pending"), make_order("B")]
        new = [make_order("A", status="accepted"), make_order("C")]

        events = diff_orders(old, new)

        assert _summary(events) == [("update", "A"), ("create", "C"), ("delete", "B")]
        assert events[0].order["status"] == "accepted"

    def test_delete_carries_old_copy(self):
        old = [make_order("B", status="ready")]
        events = diff_orders(old, [])

        assert len(events) == 1
        assert events[0].type == ChangeType.DELETE
        assert events[0].order is old[0]

    def test_unchanged_emits_nothing(self):
        old = [make_order("A"), make_order("B")]
        new = [make_order("A"), make_order("B")]
        assert diff_orders(old, new) == []

    def test_nested_change_is_update(self):
        """Any field difference counts, including nested values."""
        old = [make_order("A", items=[{"name": "Pizza", "qty": 1}])]
        new = [make_order("A", items=[{"name": "Pizza", "qty": 2}])]
        assert _summary(diff_orders(old, new)) == [("update", "A")]

    def test_deletes_in_old_order(self):
        old = [make_order("X"), make_order("Y"), make_order("Z")]
        new = [make_order("Y")]
        assert _summary(diff_orders(old, new)) == [("delete", "X"), ("delete", "Z")]

    def test_empty_to_empty(self):
        assert diff_orders([], []) == []


class TestDiffOrder:
    """Tests for single-order diffing."""

    def test_first_fetch_is_create(self):
        event = diff_order(NO_SNAPSHOT, make_order("O1"))
        assert event.type == ChangeType.CREATE

    def test_change_is_update(self):
        event = diff_order(make_order("O1"), make_order("O1", status="accepted"))
        assert event.type == ChangeType.UPDATE
        assert event.order["status"] == "accepted"

    def test_unchanged(self):
        assert diff_order(make_order("O1"), make_order("O1")) is None

    def test_not_found_after_seen_is_delete(self):
        old = make_order("O1", status="delivered")
        event = diff_order(old, None)

        assert event.type == ChangeType.DELETE
        assert event.order is old

    def test_not_found_never_seen(self):
        assert diff_order(NO_SNAPSHOT, None) is None
