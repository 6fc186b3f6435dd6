import threading

from capture.quota.base import BaseQuotaService
from capture.quota.models import Quota


class InMemoryQuotaService(BaseQuotaService):
    """Process-local quota, used for single-tenant runs and tests."""

    def __init__(self, quota: Quota) -> None:
        self._quota = quota
        self._lock = threading.Lock()
        self._consumed: set[str] = set()

    @property
    def remaining(self) -> int:
        with self._lock:
            return self._quota.remaining

    @property
    def consumed_document_ids(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._consumed)

    def has_capacity(self, count: int) -> bool:
        with self._lock:
            return self._quota.is_usable() and self._quota.remaining >= count

    def consume(self, document_id: str, count: int) -> bool:
        with self._lock:
            if document_id in self._consumed:
                return True
            if not self._quota.is_usable() or self._quota.remaining < count:
                return False
            self._quota.remaining -= count
            self._consumed.add(document_id)
            return True
