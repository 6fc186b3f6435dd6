from typing import Any

from capture.config.settings import Settings
from capture.database.models import JobRecord
from capture.database.repositories.job_repository import JobRepository
from capture.ingestion.models import IngestionContext, IngestionReport, RunStatus, UploadUnit
from capture.ingestion.orchestrator import IngestionOrchestrator
from capture.logging.logger import Log
from capture.pdf.separation import SeparationPolicy
from capture.worker.exceptions import JobFilesMissingError
from capture.worker.file_loader import FileLoader

_FAILED_STATUSES = frozenset({RunStatus.FAILED, RunStatus.PRECONDITION_FAILED})


def context_from_job(job: JobRecord) -> IngestionContext:
    """Build the ingestion context from a job row and its options column.

    Raises:
        ValueError: if the separation options are invalid.
    """
    options: dict[str, Any] = job.options or {}
    return IngestionContext(
        project_id=job.project_id,
        batch_id=job.batch_id,
        extraction_fields=tuple(options.get("extraction_fields") or ()),
        table_fields=tuple(options.get("table_fields") or ()),
        checked_fields_enabled=bool(options.get("checked_fields_enabled", False)),
        tenant_id=options.get("tenant_id"),
        separation_policy=SeparationPolicy.from_config(options.get("separation") or {}),
    )


class JobRunner:
    """Run one ingestion job and record its outcome.

    Only loading the job's files is retried. An orchestrator run is never
    repeated: units that were saved would otherwise be saved twice.
    """

    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        job_repo: JobRepository,
        file_loader: FileLoader,
        settings: Settings,
    ) -> None:
        self._orchestrator = orchestrator
        self._job_repo = job_repo
        self._file_loader = file_loader
        self._settings = settings

    def run(self, job: JobRecord) -> None:
        """Execute a single job with error handling."""
        Log.info(f"Running job {job.id} for batch {job.batch_id} (attempt {job.attempts + 1})")
        try:
            files = self._load_files(job)
        except Exception as exc:
            self._handle_load_failure(job, exc)
            return

        try:
            context = context_from_job(job)
            report = self._orchestrator.run(files, context)
        except Exception as exc:
            Log.exception(f"Job {job.id} failed: {exc}")
            self._job_repo.mark_failed(job.id, str(exc))
            return

        self._record_report(job, report)

    def _load_files(self, job: JobRecord) -> list[UploadUnit]:
        records = self._job_repo.list_files(job.id)
        if not records:
            raise JobFilesMissingError(f"Job {job.id} has no files")
        files = self._file_loader.load_all(records)
        Log.info(f"Loaded {len(files)} files for job {job.id}")
        return files

    def _record_report(self, job: JobRecord, report: IngestionReport) -> None:
        summary = report.summary()
        if report.status in _FAILED_STATUSES:
            message = report.failures[0].message if report.failures else report.status.value
            self._job_repo.mark_failed(job.id, message, summary)
            Log.error(f"Job {job.id} finished with status {report.status.value}")
            return
        self._job_repo.mark_done(job.id, summary)
        Log.info(f"Job {job.id} completed with status {report.status.value}")

    def _handle_load_failure(self, job: JobRecord, exc: Exception) -> None:
        """Increment attempts; mark failed if at max, otherwise back to pending."""
        Log.error(f"Job {job.id} could not load files: {exc}")
        if job.attempts + 1 >= self._settings.max_job_attempts:
            self._job_repo.mark_failed(job.id, str(exc))
            Log.error(f"Job {job.id} permanently failed after {job.attempts + 1} attempts")
        else:
            self._job_repo.increment_attempts(job.id)
            Log.warning(f"Job {job.id} will be retried (attempt {job.attempts + 1})")
