"""
Polling transport.

Used where push delivery is unavailable: re-fetch the channel's order set on
a fixed period and diff it against the previous snapshot.

Cycle:
1. Fetch (immediately on start, then every ``interval`` seconds)
2. Diff against the channel snapshot
3. Deliver create / update / delete events
4. Replace the snapshot

A failed fetch is logged and the cycle skipped; the next tick retries.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from orderfeed.core.exceptions import OrderNotFoundException
from orderfeed.core.metrics import POLL_CYCLES_TOTAL, POLL_DURATION
from orderfeed.models.order import (
    CUSTOMER_ID,
    DELIVERY_AGENT_ID,
    ORDER_ID,
    RESTAURANT_ID,
    STATUS,
    OrderStatus,
)
from orderfeed.services.realtime.backend import OrderBackend, Query
from orderfeed.services.realtime.events import ChangeEvent
from orderfeed.services.realtime.routing import Channel, SubscriptionKind
from orderfeed.services.realtime.snapshot import (
    NO_SNAPSHOT,
    SnapshotStore,
    diff_order,
    diff_orders,
)

logger = logging.getLogger(__name__)

Deliver = Callable[[ChangeEvent], Awaitable[None]]


class Poller(ABC):
    """
    Fetch-and-diff loop for one channel.

    ``stop()`` flips the poller to closed before cancelling its task. A cycle
    that is still waiting on the backend checks that flag before every
    delivery and before touching the snapshot, so a late response never
    reaches the unsubscribed callback.
    """

    def __init__(
        self,
        channel: Channel,
        backend: OrderBackend,
        snapshots: SnapshotStore,
        deliver: Deliver,
        interval: float,
        database_id: str,
        collection_id: str,
        limit: int = 50,
    ):
        self.channel = channel
        self.backend = backend
        self.snapshots = snapshots
        self.deliver = deliver
        self.interval = interval
        self.database_id = database_id
        self.collection_id = collection_id
        self.limit = limit

        self._task: Optional[asyncio.Task] = None
        self._closed = False

        self.cycles = 0
        self.failures = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    async def fetch(self) -> Any:
        """Fetch the current state of the channel."""
        pass

    @abstractmethod
    def diff(self, fetched: Any) -> list[ChangeEvent]:
        """Compute events between the stored snapshot and ``fetched``."""
        pass

    def store(self, fetched: Any) -> None:
        self.snapshots.set(self.channel.id, fetched)

    async def start(self) -> None:
        """Run the first cycle, then schedule the recurring ones."""
        await self.poll_once()
        if self._closed:
            return
        self._task = asyncio.create_task(self._run(), name=f"poll:{self.channel.id}")

    def stop(self) -> None:
        """Stop polling and drop the channel snapshot."""
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.snapshots.discard(self.channel.id)

    async def _run(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.interval)
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failures += 1
                POLL_CYCLES_TOTAL.labels(kind=self.channel.kind.value, status="error").inc()
                logger.exception(f"Polling cycle failed on {self.channel.id}: {e}")

    async def poll_once(self) -> None:
        """Run one fetch-and-diff cycle."""
        kind = self.channel.kind.value
        start = time.perf_counter()

        try:
            fetched = await self.fetch()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            POLL_CYCLES_TOTAL.labels(kind=kind, status="error").inc()
            logger.warning(f"Polling error on {self.channel.id}: {e}")
            return
        finally:
            POLL_DURATION.labels(kind=kind).observe(time.perf_counter() - start)

        if self._closed:
            logger.debug(f"Discarding late poll result for {self.channel.id}")
            return

        self.cycles += 1
        POLL_CYCLES_TOTAL.labels(kind=kind, status="success").inc()

        for event in self.diff(fetched):
            if self._closed:
                return
            await self.deliver(event)

        if not self._closed:
            self.store(fetched)


class RestaurantOrdersPoller(Poller):
    """Orders placed with one restaurant."""

    async def fetch(self) -> list[dict]:
        return await self.backend.list_documents(
            self.database_id,
            self.collection_id,
            [Query.equal(RESTAURANT_ID, self.channel.key), Query.limit(self.limit)],
        )

    def diff(self, fetched: list[dict]) -> list[ChangeEvent]:
        return diff_orders(self.snapshots.get(self.channel.id), fetched)


class CustomerOrdersPoller(RestaurantOrdersPoller):
    """Orders placed by one customer."""

    async def fetch(self) -> list[dict]:
        return await self.backend.list_documents(
            self.database_id,
            self.collection_id,
            [Query.equal(CUSTOMER_ID, self.channel.key), Query.limit(self.limit)],
        )


class DriverDeliveriesPoller(RestaurantOrdersPoller):
    """
    Orders assigned to one driver plus the pool any driver may claim.

    Both sets are fetched concurrently. When an order shows up in both, the
    assigned copy wins.
    """

    async def fetch(self) -> list[dict]:
        assigned, ready = await asyncio.gather(
            self.backend.list_documents(
                self.database_id,
                self.collection_id,
                [Query.equal(DELIVERY_AGENT_ID, self.channel.key), Query.limit(self.limit)],
            ),
            self.backend.list_documents(
                self.database_id,
                self.collection_id,
                [Query.equal(STATUS, OrderStatus.READY.value), Query.limit(self.limit)],
            ),
        )

        seen = {o.get(ORDER_ID) for o in assigned}
        merged = list(assigned)
        for order in ready:
            if order.get(DELIVERY_AGENT_ID) or order.get(ORDER_ID) in seen:
                continue
            seen.add(order.get(ORDER_ID))
            merged.append(order)
        return merged


class OrderPoller(Poller):
    """
    A single order.

    A not-found response after the order was seen yields a delete built
    from the cached copy, and the channel goes back to "no snapshot".
    """

    async def fetch(self) -> Optional[dict]:
        try:
            return await self.backend.get_document(
                self.database_id, self.collection_id, self.channel.key
            )
        except OrderNotFoundException:
            if self.snapshots.get(self.channel.id) is NO_SNAPSHOT:
                logger.debug(f"Order {self.channel.key} not found yet")
            return None

    def diff(self, fetched: Optional[dict]) -> list[ChangeEvent]:
        event = diff_order(self.snapshots.get(self.channel.id), fetched)
        return [event] if event else []

    def store(self, fetched: Optional[dict]) -> None:
        if fetched is None:
            self.snapshots.discard(self.channel.id)
        else:
            self.snapshots.set(self.channel.id, fetched)


POLLERS: dict[SubscriptionKind, type[Poller]] = {
    SubscriptionKind.RESTAURANT: RestaurantOrdersPoller,
    SubscriptionKind.CUSTOMER: CustomerOrdersPoller,
    SubscriptionKind.DRIVER: DriverDeliveriesPoller,
    SubscriptionKind.ORDER: OrderPoller,
}


def create_poller(channel: Channel, **kwargs) -> Poller:
    """Build the poller matching the channel kind."""
    return POLLERS[channel.kind](channel, **kwargs)
