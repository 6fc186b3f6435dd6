from collections.abc import Callable

from capture.ingestion.errors import ErrorKind, Failure
from capture.ingestion.models import FileKind, LogicalDocument
from capture.ingestion.pipeline import PipelineStep, UnitContext
from capture.logging.logger import Log
from capture.pdf.pages import extract_page_range
from capture.persistence.base import PersistenceGateway
from capture.persistence.file_store import FileStore
from capture.quota.gate import ResourceGate
from capture.recognition.strategies import StrategyChain


class ReserveQuotaStep(PipelineStep):
    failure_kind = ErrorKind.QUOTA_EXCEEDED

    def __init__(self, gate: ResourceGate) -> None:
        self._gate = gate

    def run(self, context: UnitContext) -> UnitContext:
        reservation = self._gate.try_reserve(1)
        if reservation is None:
            context.failure = Failure(
                kind=ErrorKind.QUOTA_EXCEEDED,
                message="License has insufficient document capacity",
            )
            return context
        context.reservation = reservation
        return context


class RecognizeStep(PipelineStep):
    failure_kind = ErrorKind.RECOGNITION_UNAVAILABLE

    def __init__(self, chain: StrategyChain) -> None:
        self._chain = chain

    def run(self, context: UnitContext) -> UnitContext:
        outcome = self._chain.run(context.document, context.ingestion)
        if isinstance(outcome, Failure):
            context.failure = outcome
            return context
        context.result = outcome
        context.document.text = outcome.text
        context.document.metadata = dict(outcome.metadata)
        context.document.line_items = list(outcome.line_items)
        return context


class PersistDocumentStep(PipelineStep):
    failure_kind = ErrorKind.PERSISTENCE_FAILED

    def __init__(
        self,
        gateway: PersistenceGateway,
        file_store: FileStore | None = None,
        page_splitter: Callable[[bytes, int, int], bytes] = extract_page_range,
    ) -> None:
        self._gateway = gateway
        self._file_store = file_store
        self._page_splitter = page_splitter

    def run(self, context: UnitContext) -> UnitContext:
        if context.result is None:
            raise ValueError("UnitContext.result must be set before persist")
        batch_id = context.ingestion.batch_id
        if batch_id is None or not self._gateway.batch_exists(batch_id):
            context.halt_event.set()
            context.failure = Failure(
                kind=ErrorKind.PRECONDITION_FAILED,
                message=f"Batch {batch_id} no longer exists",
            )
            return context

        document = context.document
        context.content_ref = self._store_content(batch_id, document)
        try:
            context.document_id = self._gateway.save_document(
                batch_id,
                document.name,
                document.source.mime_type,
                context.content_ref,
                context.result.text,
                context.result.metadata,
                context.result.line_items,
            )
        except Exception:
            self._discard_content(context.content_ref)
            context.content_ref = ""
            raise
        try:
            self._gateway.increment_batch_counters(batch_id)
        except Exception as exc:
            Log.warning(f"Batch {batch_id} counters not updated for {document.name}: {exc}")
        Log.info(f"Saved {document.name} as document {context.document_id}")
        return context

    def _store_content(self, batch_id: str, document: LogicalDocument) -> str:
        if self._file_store is None:
            return f"{document.source.name}#pages={document.start_page}-{document.end_page}"
        data = document.source.data
        if document.kind == FileKind.PDF:
            data = self._page_splitter(data, document.start_page, document.end_page)
        return self._file_store.store(batch_id, document.name, data)

    def _discard_content(self, content_ref: str) -> None:
        if self._file_store is None:
            return
        try:
            self._file_store.delete(content_ref)
        except OSError as exc:
            Log.warning(f"Could not remove unsaved content {content_ref}: {exc}")


class ConsumeQuotaStep(PipelineStep):
    def __init__(self, gate: ResourceGate) -> None:
        self._gate = gate

    def run(self, context: UnitContext) -> UnitContext:
        if context.reservation is None or context.document_id is None:
            raise ValueError("Quota can only be consumed for a reserved, saved document")
        reservation, context.reservation = context.reservation, None
        try:
            self._gate.commit(reservation, context.document_id)
        except Exception as exc:
            # Saved already; a bookkeeping failure does not fail the unit.
            Log.warning(
                f"Document {context.document_id} saved but quota was not updated: {exc}"
            )
        return context


def default_steps(
    gate: ResourceGate,
    chain: StrategyChain,
    gateway: PersistenceGateway,
    file_store: FileStore | None = None,
) -> list[PipelineStep]:
    """Reserve -> recognize -> persist -> consume."""
    return [
        ReserveQuotaStep(gate),
        RecognizeStep(chain),
        PersistDocumentStep(gateway, file_store),
        ConsumeQuotaStep(gate),
    ]
