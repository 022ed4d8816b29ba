"""
Backend contract used by the realtime layer.

The realtime service never talks to Appwrite directly; it is handed an
``OrderBackend`` at construction time. Tests use an in-memory
implementation, production uses ``AppwriteBackend``.
"""
import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Union

# Raw push envelope: {"events": [...], "payload": {...}}
RawEventHandler = Callable[[dict], Any]
Unsubscribe = Callable[[], None]


class Query:
    """
    Query filter builders in the Appwrite wire format.

    Each filter is a JSON string such as
    ``{"method":"equal","attribute":"status","values":["ready"]}``.
    """

    @staticmethod
    def _build(method: str, attribute: str = None, values: list = None) -> str:
        query: dict[str, Any] = {"method": method}
        if attribute is not None:
            query["attribute"] = attribute
        if values is not None:
            query["values"] = values
        return json.dumps(query, separators=(",", ":"))

    @classmethod
    def equal(cls, attribute: str, value: Union[str, int, bool, list]) -> str:
        values = value if isinstance(value, list) else [value]
        return cls._build("equal", attribute, values)

    @classmethod
    def limit(cls, count: int) -> str:
        return cls._build("limit", values=[count])


def collection_channel(database_id: str, collection_id: str) -> str:
    """Realtime channel for every document of a collection."""
    return f"databases.{database_id}.collections.{collection_id}.documents"


def document_channel(database_id: str, collection_id: str, document_id: str) -> str:
    """Realtime channel for a single document."""
    return f"{collection_channel(database_id, collection_id)}.{document_id}"


class OrderBackend(ABC):
    """Document store with an optional push change feed."""

    @abstractmethod
    async def list_documents(
        self,
        database_id: str,
        collection_id: str,
        queries: list[str],
    ) -> list[dict]:
        """Return the documents matching ``queries``."""
        pass

    @abstractmethod
    async def get_document(
        self,
        database_id: str,
        collection_id: str,
        document_id: str,
    ) -> dict:
        """
        Return one document.

        Raises:
            OrderNotFoundException: If the document does not exist
        """
        pass

    @abstractmethod
    def subscribe(self, channels: list[str], handler: RawEventHandler) -> Unsubscribe:
        """
        Start delivering push events for ``channels`` to ``handler``.

        Must be called from a running event loop. Returns a synchronous
        function that stops delivery.
        """
        pass

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        pass
