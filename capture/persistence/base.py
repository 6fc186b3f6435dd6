from abc import ABC, abstractmethod
from typing import Any


class PersistenceGateway(ABC):
    """Contract for storing recognized documents and batch progress."""

    @abstractmethod
    def batch_exists(self, batch_id: str) -> bool:
        """Return False if the batch was deleted (possibly by another session)."""

    @abstractmethod
    def save_document(
        self,
        batch_id: str,
        name: str,
        kind: str,
        content_ref: str,
        text: str,
        metadata: dict[str, Any],
        line_items: list[dict[str, Any]],
    ) -> str:
        """Insert a document record and return its id.

        Raises:
            PersistenceError: if the record cannot be stored.
        """

    @abstractmethod
    def increment_batch_counters(self, batch_id: str) -> None:
        """Atomically add one to the batch's total and processed counters."""
