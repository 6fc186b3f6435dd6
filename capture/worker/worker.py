import threading

from capture.config.settings import Settings
from capture.database.connection import get_connection
from capture.database.models import JobRecord
from capture.database.repositories.job_repository import JobRepository
from capture.logging.logger import Log
from capture.worker.job_runner import JobRunner


class Worker:
    """Poll loop for ingestion jobs: claim -> run -> wait.

    ``stop()`` ends the loop after the job in progress; a running ingestion
    is never interrupted halfway, so its report is always recorded.
    """

    def __init__(
        self,
        job_repo: JobRepository,
        job_runner: JobRunner,
        settings: Settings,
    ) -> None:
        self._job_repo = job_repo
        self._job_runner = job_runner
        self._settings = settings
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def run(self, max_jobs: int | None = None) -> int:
        """Poll until stopped or interrupted and return the number of jobs run.

        If max_jobs is set, stop after processing that many jobs (for testing).
        """
        Log.info("Worker started, polling for ingestion jobs")
        jobs_done = 0
        try:
            while not self._stop_event.is_set():
                if max_jobs is not None and jobs_done >= max_jobs:
                    break
                job = self._try_claim_job()
                if job is None:
                    Log.debug("No ingestion jobs available, waiting")
                    self._stop_event.wait(self._settings.job_poll_interval_seconds)
                    continue
                Log.info(f"Claimed job {job.id} for batch {job.batch_id}")
                self._job_runner.run(job)
                jobs_done += 1
        except KeyboardInterrupt:
            Log.info("Worker interrupted")
        Log.info(f"Worker shutting down after {jobs_done} jobs")
        return jobs_done

    def _try_claim_job(self) -> JobRecord | None:
        """Attempt to claim the next pending job. Gracefully handle DB errors."""
        try:
            with get_connection() as conn:
                return self._job_repo.claim_next_job(conn)
        except Exception as exc:
            Log.warning(f"Database error, will retry: {exc}")
            return None
