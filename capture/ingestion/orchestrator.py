"""Top-level coordinator of an ingestion run.

Run lifecycle:
1. Validate: a project and a batch are selected and the batch still exists.
   Otherwise the run ends with a precondition failure and no side effects.
2. Split: PDFs are partitioned into logical documents by the boundary
   analyzer; images become a single document each.
3. Schedule: logical documents go to the bounded worker pool. Each one runs
   reserve quota -> recognize -> persist -> consume quota.
4. Aggregate: per-unit failures are collected into the report. Any success
   alongside failures is a partial success.

There is no retry at this level; retries happen inside the recognition client.
"""

import threading
from collections.abc import Sequence
from pathlib import Path

from capture.config.settings import Settings
from capture.database.repositories.documents_repository import DocumentsRepository
from capture.database.repositories.license_repository import LicenseRepository
from capture.imaging.normalizer import ImageNormalizer
from capture.ingestion.errors import ErrorKind, Failure, UnitFailure
from capture.ingestion.models import (
    FileKind,
    IngestionContext,
    IngestionReport,
    LogicalDocument,
    RunStatus,
    UploadUnit,
)
from capture.ingestion.pipeline import UnitContext, UnitPipeline
from capture.ingestion.run import RunHandle
from capture.ingestion.steps import default_steps
from capture.logging.logger import Log
from capture.pdf.exceptions import CorruptDocumentError
from capture.pdf.factory import PdfReaderFactory
from capture.pdf.separation import BoundaryAnalyzer, document_name
from capture.persistence.base import PersistenceGateway
from capture.persistence.file_store import FileStore
from capture.quota.base import BaseQuotaService
from capture.quota.gate import ResourceGate
from capture.recognition.client_base import BaseRecognitionClient
from capture.recognition.factory import RecognitionClientFactory
from capture.recognition.recognizer import RecognitionClient
from capture.recognition.strategies import ImageFallbackStrategy, StrategyChain, TextStrategy
from capture.scheduler.pool import BoundedWorkScheduler, UnitCancelledError, UnitOutcome


class IngestionOrchestrator:
    """Drives uploaded files through splitting, recognition and persistence."""

    def __init__(
        self,
        *,
        gateway: PersistenceGateway,
        analyzer: BoundaryAnalyzer,
        pipeline: UnitPipeline,
        scheduler: BoundedWorkScheduler,
        worker_count: int = 3,
    ) -> None:
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        self._gateway = gateway
        self._analyzer = analyzer
        self._pipeline = pipeline
        self._scheduler = scheduler
        self._worker_count = worker_count
        self._handles: list[RunHandle] = []
        self._handles_lock = threading.Lock()

    def start(self, files: Sequence[UploadUnit], context: IngestionContext) -> RunHandle:
        """Begin a run in the background and return its handle."""
        handle = RunHandle(
            context.batch_id,
            lambda cancel_event: self._execute(list(files), context, cancel_event),
        )
        with self._handles_lock:
            self._handles = [h for h in self._handles if h.is_running]
            self._handles.append(handle)
        return handle.start()

    def run(self, files: Sequence[UploadUnit], context: IngestionContext) -> IngestionReport:
        """Run synchronously and return the report."""
        return self.start(files, context).wait()

    def ingest(
        self,
        files: UploadUnit | Sequence[UploadUnit],
        context: IngestionContext,
    ) -> IngestionReport:
        """Ingest a single PDF, a single image or a heterogeneous list of files."""
        if isinstance(files, UploadUnit):
            files = [files]
        return self.run(files, context)

    def is_running(self, batch_id: str) -> bool:
        with self._handles_lock:
            return any(h.batch_id == batch_id and h.is_running for h in self._handles)

    def _execute(
        self,
        files: list[UploadUnit],
        context: IngestionContext,
        cancel_event: threading.Event,
    ) -> IngestionReport:
        Log.info(f"Ingestion run for batch {context.batch_id}: {len(files)} files")

        precondition = self._validate(context)
        if precondition is not None:
            Log.error(f"Ingestion run for batch {context.batch_id} aborted: {precondition.message}")
            return IngestionReport(
                batch_id=context.batch_id,
                status=RunStatus.PRECONDITION_FAILED,
                failures=[UnitFailure.from_failure(str(context.batch_id), precondition)],
            )

        documents, failures = self._split(files, context)
        Log.info(
            f"Batch {context.batch_id}: {len(documents)} logical documents, "
            f"{len(failures)} files rejected"
        )

        halt_event = threading.Event()
        outcomes = self._scheduler.run_all(
            documents,
            self._worker_count,
            lambda document: self._process_unit(document, context, halt_event),
            cancel_event,
        )

        succeeded: list[str] = []
        for outcome in outcomes:
            failure = self._failure_of(outcome)
            if failure is None:
                succeeded.append(outcome.unit.name)
            else:
                failures.append(UnitFailure.from_failure(outcome.unit.name, failure))

        report = IngestionReport(
            batch_id=context.batch_id,
            status=self._status(succeeded, failures, halt_event, cancel_event),
            succeeded=succeeded,
            failures=failures,
        )
        Log.info(
            f"Ingestion run for batch {context.batch_id} finished: {report.status.value}, "
            f"{len(succeeded)} saved, {len(failures)} failed"
        )
        if failures:
            Log.warning(f"Failed units: {', '.join(report.failed_names)}")
        return report

    def _validate(self, context: IngestionContext) -> Failure | None:
        if not context.project_id or not context.batch_id:
            return Failure(
                kind=ErrorKind.PRECONDITION_FAILED,
                message="A project and a batch must be selected before uploading",
            )
        try:
            exists = self._gateway.batch_exists(context.batch_id)
        except Exception as exc:
            return Failure(
                kind=ErrorKind.PRECONDITION_FAILED,
                message=f"Could not verify batch {context.batch_id}: {exc}",
            )
        if not exists:
            return Failure(
                kind=ErrorKind.PRECONDITION_FAILED,
                message=f"Batch {context.batch_id} no longer exists",
            )
        return None

    def _split(
        self,
        files: list[UploadUnit],
        context: IngestionContext,
    ) -> tuple[list[LogicalDocument], list[UnitFailure]]:
        documents: list[LogicalDocument] = []
        failures: list[UnitFailure] = []
        for upload in files:
            kind = upload.kind
            if kind == FileKind.PDF:
                try:
                    page_texts = self._analyzer.read_pages(upload.data)
                except CorruptDocumentError as exc:
                    Log.error(f"{upload.name}: unreadable PDF: {exc}")
                    failures.append(
                        UnitFailure(upload.name, ErrorKind.CORRUPT_DOCUMENT, str(exc))
                    )
                    continue
                boundaries = self._analyzer.analyze_pages(
                    page_texts, context.separation_policy
                )
                documents.extend(
                    LogicalDocument(
                        index=boundary.index,
                        name=document_name(upload.name, boundary.index, len(boundaries)),
                        source=upload,
                        start_page=boundary.start_page,
                        end_page=boundary.end_page,
                        separator_type=boundary.separator_type,
                        page_texts=tuple(
                            page_texts[boundary.start_page - 1 : boundary.end_page]
                        ),
                    )
                    for boundary in boundaries
                )
            elif kind in (FileKind.IMAGE, FileKind.TIFF):
                documents.append(LogicalDocument(index=0, name=upload.name, source=upload))
            else:
                failures.append(
                    UnitFailure(
                        upload.name,
                        ErrorKind.UNSUPPORTED_FILE,
                        f"Unsupported file type '{upload.mime_type}'",
                    )
                )
        return documents, failures

    def _process_unit(
        self,
        document: LogicalDocument,
        context: IngestionContext,
        halt_event: threading.Event,
    ) -> UnitContext:
        unit = UnitContext(document=document, ingestion=context, halt_event=halt_event)
        if halt_event.is_set():
            unit.failure = Failure(
                kind=ErrorKind.PRECONDITION_FAILED,
                message=f"Batch {context.batch_id} no longer exists",
            )
            return unit
        return self._pipeline.run(unit)

    @staticmethod
    def _failure_of(outcome: UnitOutcome[LogicalDocument, UnitContext]) -> Failure | None:
        if isinstance(outcome.error, UnitCancelledError):
            return Failure(
                kind=ErrorKind.CANCELLED, message="Run cancelled before this unit started"
            )
        if outcome.error is not None:
            return Failure(kind=ErrorKind.PERSISTENCE_FAILED, message=str(outcome.error))
        assert outcome.value is not None
        return outcome.value.failure

    @staticmethod
    def _status(
        succeeded: list[str],
        failures: list[UnitFailure],
        halt_event: threading.Event,
        cancel_event: threading.Event,
    ) -> RunStatus:
        if not failures:
            return RunStatus.SUCCESS
        if succeeded:
            return RunStatus.PARTIAL_SUCCESS
        if halt_event.is_set():
            return RunStatus.PRECONDITION_FAILED
        if cancel_event.is_set():
            return RunStatus.CANCELLED
        return RunStatus.FAILED


def build_orchestrator(
    settings: Settings,
    *,
    gateway: PersistenceGateway | None = None,
    quota_service: BaseQuotaService | None = None,
    recognition_client: BaseRecognitionClient | None = None,
    files_root: Path | None = None,
) -> IngestionOrchestrator:
    """Build an IngestionOrchestrator with all required adapters."""
    gateway = gateway if gateway is not None else DocumentsRepository()
    quota_service = (
        quota_service if quota_service is not None else LicenseRepository(settings.license_id)
    )
    recognition_client = (
        recognition_client
        if recognition_client is not None
        else RecognitionClientFactory.create(settings)
    )
    reader = PdfReaderFactory.create(settings)
    normalizer = ImageNormalizer(
        max_dimension=settings.max_image_dimension,
        quality=settings.image_quality,
        render_scale=settings.render_scale,
    )
    recognizer = RecognitionClient(
        recognition_client,
        max_retries=settings.recognition_max_retries,
        base_delay_seconds=settings.recognition_base_delay_seconds,
        max_payload_bytes=settings.max_payload_bytes,
    )
    chain = StrategyChain(
        [
            TextStrategy(
                recognizer,
                reader,
                min_text_length=settings.min_text_length,
                max_text_pages=settings.max_text_pages,
            ),
            ImageFallbackStrategy(recognizer, normalizer),
        ]
    )
    gate = ResourceGate(quota_service)
    file_store = FileStore(files_root if files_root is not None else Path(settings.files_root))
    return IngestionOrchestrator(
        gateway=gateway,
        analyzer=BoundaryAnalyzer(reader),
        pipeline=UnitPipeline(default_steps(gate, chain, gateway, file_store), gate),
        scheduler=BoundedWorkScheduler(
            inter_item_delay_seconds=settings.inter_item_delay_seconds
        ),
        worker_count=settings.worker_count,
    )
