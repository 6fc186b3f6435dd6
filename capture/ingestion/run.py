import threading
from collections.abc import Callable

from capture.ingestion.models import IngestionReport


class RunHandle:
    """Handle to one orchestrator run executing in a background thread."""

    def __init__(
        self,
        batch_id: str | None,
        target: Callable[[threading.Event], IngestionReport],
    ) -> None:
        self.batch_id = batch_id
        self._target = target
        self._cancel_event = threading.Event()
        self._done = threading.Event()
        self._report: IngestionReport | None = None
        self._error: BaseException | None = None
        self._thread = threading.Thread(
            target=self._run,
            name=f"ingest-run-{batch_id}",
            daemon=True,
        )

    @property
    def is_running(self) -> bool:
        return not self._done.is_set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    def start(self) -> "RunHandle":
        self._thread.start()
        return self

    def cancel(self) -> None:
        """Ask the run to stop before its next unit. Units in flight complete."""
        self._cancel_event.set()

    def wait(self, timeout: float | None = None) -> IngestionReport:
        """Block until the run finishes and return its report.

        Raises:
            TimeoutError: if the run is still going after ``timeout`` seconds.
        """
        if not self._done.wait(timeout):
            raise TimeoutError(f"Ingestion run for batch {self.batch_id} still running")
        if self._error is not None:
            raise self._error
        assert self._report is not None
        return self._report

    def _run(self) -> None:
        try:
            self._report = self._target(self._cancel_event)
        except BaseException as exc:
            self._error = exc
        finally:
            self._done.set()
