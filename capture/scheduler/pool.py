"""Fixed-size worker pool over a FIFO queue of units.

Each worker is a sequential loop: take the next unit, run it to completion,
record the outcome, pause for the inter-item delay, take the next one. An
exception raised for one unit is recorded as that unit's outcome and never
stops the other workers.
"""

import queue
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from capture.logging.logger import Log

T = TypeVar("T")
R = TypeVar("R")


class UnitCancelledError(Exception):
    """Recorded for units that were never started because the run was cancelled."""


@dataclass
class UnitOutcome(Generic[T, R]):
    """Terminal outcome of one unit: a value or the exception it raised."""

    index: int
    unit: T
    value: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedWorkScheduler:
    """Runs units with at most ``worker_count`` in flight."""

    def __init__(
        self,
        *,
        inter_item_delay_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._inter_item_delay = inter_item_delay_seconds
        self._sleep = sleep

    def run_all(
        self,
        units: Sequence[T],
        worker_count: int,
        fn: Callable[[T], R],
        cancel_event: threading.Event | None = None,
    ) -> list[UnitOutcome[T, R]]:
        """Process every unit and return outcomes in input order.

        Args:
            units: Work items, consumed in FIFO order.
            worker_count: Maximum number of units processed concurrently.
            fn: Called once per unit inside a worker thread.
            cancel_event: Checked between units; once set, units not yet
                started get a ``UnitCancelledError`` outcome.
        """
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        if not units:
            return []

        pending: queue.Queue[tuple[int, T]] = queue.Queue()
        for index, unit in enumerate(units):
            pending.put((index, unit))

        outcomes: list[UnitOutcome[T, R] | None] = [None] * len(units)
        workers = [
            threading.Thread(
                target=self._work,
                args=(pending, outcomes, fn, cancel_event),
                name=f"ingest-worker-{n + 1}",
                daemon=True,
            )
            for n in range(min(worker_count, len(units)))
        ]
        Log.debug(f"Scheduling {len(units)} units on {len(workers)} workers")
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        return [outcome for outcome in outcomes if outcome is not None]

    def _work(
        self,
        pending: "queue.Queue[tuple[int, T]]",
        outcomes: list[UnitOutcome[T, R] | None],
        fn: Callable[[T], R],
        cancel_event: threading.Event | None,
    ) -> None:
        while True:
            try:
                index, unit = pending.get_nowait()
            except queue.Empty:
                return

            if cancel_event is not None and cancel_event.is_set():
                outcomes[index] = UnitOutcome(
                    index=index, unit=unit, error=UnitCancelledError("Run cancelled")
                )
                continue

            try:
                outcomes[index] = UnitOutcome(index=index, unit=unit, value=fn(unit))
            except Exception as exc:
                Log.exception(f"Unit {index} raised {type(exc).__name__}: {exc}")
                outcomes[index] = UnitOutcome(index=index, unit=unit, error=exc)

            if self._inter_item_delay > 0 and not pending.empty():
                self._sleep(self._inter_item_delay)
