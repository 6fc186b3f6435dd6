from abc import ABC, abstractmethod


class BaseQuotaService(ABC):
    """Contract for license/quota backends."""

    @abstractmethod
    def has_capacity(self, count: int) -> bool:
        """Return True if at least ``count`` documents can still be processed."""

    @abstractmethod
    def consume(self, document_id: str, count: int) -> bool:
        """Atomically deduct ``count`` documents for ``document_id``.

        Idempotent per document id: consuming twice for the same document
        deducts once and returns True both times.

        Returns:
            False when the capacity is insufficient; nothing is deducted then.
        """
