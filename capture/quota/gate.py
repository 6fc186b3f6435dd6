"""Resource gate: grants document capacity before work is committed.

Capacity is reserved before recognition starts and either committed after the
document is saved or released when the unit fails. Reservations are counted
against the quota service, so two workers can never both be granted the last
unit of capacity.
"""

import itertools
import threading

from capture.logging.logger import Log
from capture.quota.base import BaseQuotaService
from capture.quota.models import Reservation


class ResourceGate:
    """Tracks reservations against a quota service."""

    def __init__(self, service: BaseQuotaService) -> None:
        self._service = service
        self._lock = threading.Lock()
        self._reserved = 0
        self._open: dict[int, Reservation] = {}
        self._ids = itertools.count(1)

    @property
    def reserved(self) -> int:
        with self._lock:
            return self._reserved

    def has_capacity(self, count: int = 1) -> bool:
        """True if ``count`` more documents fit beside the open reservations."""
        with self._lock:
            return self._service.has_capacity(self._reserved + count)

    def try_reserve(self, count: int = 1) -> Reservation | None:
        """Reserve ``count`` documents, or return None when capacity is short."""
        with self._lock:
            if not self._service.has_capacity(self._reserved + count):
                return None
            reservation = Reservation(id=next(self._ids), count=count)
            self._reserved += count
            self._open[reservation.id] = reservation
            return reservation

    def commit(self, reservation: Reservation, document_id: str) -> bool:
        """Consume the reserved capacity for a saved document.

        The reservation is closed whether or not the service accepts the
        consumption.
        """
        with self._lock:
            if self._open.pop(reservation.id, None) is None:
                raise ValueError(f"Reservation {reservation.id} is not open")
            try:
                consumed = self._service.consume(document_id, reservation.count)
            finally:
                self._reserved -= reservation.count
        if not consumed:
            Log.warning(f"Document {document_id} saved but quota was not consumed")
        return consumed

    def release(self, reservation: Reservation) -> None:
        """Return reserved capacity without consuming it. Safe to call twice."""
        with self._lock:
            if self._open.pop(reservation.id, None) is not None:
                self._reserved -= reservation.count
