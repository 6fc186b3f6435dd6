import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from capture.ingestion.errors import ErrorKind, Failure
from capture.ingestion.models import IngestionContext, LogicalDocument, UploadUnit
from capture.ingestion.pipeline import PipelineStep, UnitContext, UnitPipeline
from capture.ingestion.steps import (
    ConsumeQuotaStep,
    PersistDocumentStep,
    RecognizeStep,
    ReserveQuotaStep,
    default_steps,
)
from capture.persistence.exceptions import BatchNotFoundError
from capture.persistence.file_store import FileStore
from capture.quota.gate import ResourceGate
from capture.quota.memory import InMemoryQuotaService
from capture.quota.models import Quota
from capture.recognition.models import RecognitionResult
from tests.helpers import InMemoryGateway

_RESULT = RecognitionResult(text="Invoice", metadata={"total": "42"}, line_items=[{"a": 1}])


def _gate(remaining: int = 5) -> tuple[ResourceGate, InMemoryQuotaService]:
    service = InMemoryQuotaService(Quota(total=max(remaining, 1), remaining=remaining))
    return ResourceGate(service), service


def _unit(
    name: str = "photo.png",
    mime: str = "image/png",
    data: bytes = b"img",
    start: int = 1,
    end: int = 1,
) -> UnitContext:
    upload = UploadUnit(name=name, mime_type=mime, data=data)
    document = LogicalDocument(index=0, name=name, source=upload, start_page=start, end_page=end)
    return UnitContext(
        document=document,
        ingestion=IngestionContext(project_id="p1", batch_id="batch-1"),
    )


def _chain(outcome: RecognitionResult | Failure = _RESULT) -> MagicMock:
    chain = MagicMock()
    chain.run.return_value = outcome
    return chain


class TestReserveQuotaStep:
    def test_sets_reservation(self) -> None:
        gate, _service = _gate(1)

        context = ReserveQuotaStep(gate).run(_unit())

        assert context.reservation is not None
        assert context.failure is None

    def test_no_capacity_is_quota_exceeded(self) -> None:
        gate, _service = _gate(0)

        context = ReserveQuotaStep(gate).run(_unit())

        assert context.failure is not None
        assert context.failure.kind == ErrorKind.QUOTA_EXCEEDED


class TestRecognizeStep:
    def test_copies_result_onto_document(self) -> None:
        context = RecognizeStep(_chain()).run(_unit())

        assert context.result == _RESULT
        assert context.document.text == "Invoice"
        assert context.document.metadata == {"total": "42"}
        assert context.document.line_items == [{"a": 1}]

    def test_failure_is_propagated(self) -> None:
        failure = Failure(kind=ErrorKind.INVALID_RESPONSE, message="bad")

        context = RecognizeStep(_chain(failure)).run(_unit())

        assert context.failure == failure


class TestPersistDocumentStep:
    def test_saves_document_and_increments_counters(self) -> None:
        gateway = InMemoryGateway()
        context = _unit()
        context.result = _RESULT

        context = PersistDocumentStep(gateway).run(context)

        assert context.document_id == "doc-1"
        saved = gateway.documents[0]
        assert saved["name"] == "photo.png"
        assert saved["kind"] == "image/png"
        assert saved["metadata"] == {"total": "42"}
        assert gateway.counters == {"batch-1": 1}

    def test_deleted_batch_halts_the_run(self) -> None:
        gateway = InMemoryGateway(batch_ids=set())
        context = _unit()
        context.result = _RESULT

        context = PersistDocumentStep(gateway).run(context)

        assert context.failure is not None
        assert context.failure.kind == ErrorKind.PRECONDITION_FAILED
        assert context.halt_event.is_set()
        assert gateway.documents == []

    def test_counter_failure_does_not_fail_unit(self) -> None:
        gateway = MagicMock()
        gateway.batch_exists.return_value = True
        gateway.save_document.return_value = "doc-9"
        gateway.increment_batch_counters.side_effect = RuntimeError("lock timeout")
        context = _unit()
        context.result = _RESULT

        context = PersistDocumentStep(gateway).run(context)

        assert context.failure is None
        assert context.document_id == "doc-9"

    def test_stores_pdf_page_range(self, tmp_path: Path) -> None:
        gateway = InMemoryGateway()
        splitter = MagicMock(return_value=b"%PDF sub")
        context = _unit(name="scan_doc2.pdf", mime="application/pdf", data=b"%PDF", start=3, end=4)
        context.result = _RESULT

        context = PersistDocumentStep(gateway, FileStore(tmp_path), splitter).run(context)

        splitter.assert_called_once_with(b"%PDF", 3, 4)
        assert (tmp_path / context.content_ref).read_bytes() == b"%PDF sub"
        assert gateway.documents[0]["content_ref"] == context.content_ref

    def test_failed_save_removes_stored_content(self, tmp_path: Path) -> None:
        gateway = MagicMock()
        gateway.batch_exists.return_value = True
        gateway.save_document.side_effect = BatchNotFoundError("Batch batch-1 does not exist")
        context = _unit()
        context.result = _RESULT

        with pytest.raises(BatchNotFoundError):
            PersistDocumentStep(gateway, FileStore(tmp_path)).run(context)

        assert [p for p in tmp_path.rglob("*") if p.is_file()] == []
        assert context.content_ref == ""
        gateway.increment_batch_counters.assert_not_called()

    def test_requires_result(self) -> None:
        with pytest.raises(ValueError, match="result"):
            PersistDocumentStep(InMemoryGateway()).run(_unit())


class TestConsumeQuotaStep:
    def test_commits_reservation(self) -> None:
        gate, service = _gate(1)
        context = _unit()
        context.reservation = gate.try_reserve()
        context.document_id = "doc-1"

        context = ConsumeQuotaStep(gate).run(context)

        assert context.reservation is None
        assert service.remaining == 0

    def test_consume_error_keeps_unit_successful(self) -> None:
        gate, service = _gate(1)
        context = _unit()
        context.reservation = gate.try_reserve()
        context.document_id = "doc-1"

        with patch.object(service, "consume", side_effect=ConnectionError("license db down")):
            context = ConsumeQuotaStep(gate).run(context)

        assert context.failure is None
        assert context.reservation is None
        assert gate.reserved == 0

    def test_requires_saved_document(self) -> None:
        gate, _service = _gate(1)
        context = _unit()
        context.reservation = gate.try_reserve()

        with pytest.raises(ValueError):
            ConsumeQuotaStep(gate).run(context)


class _ExplodingStep(PipelineStep):
    def run(self, context: UnitContext) -> UnitContext:
        raise RuntimeError("disk full")


class TestUnitPipeline:
    def test_success_consumes_quota_once(self) -> None:
        gate, service = _gate(2)
        gateway = InMemoryGateway()
        pipeline = UnitPipeline(default_steps(gate, _chain(), gateway), gate)

        context = pipeline.run(_unit())

        assert context.failure is None
        assert service.remaining == 1
        assert service.consumed_document_ids == {"doc-1"}
        assert gate.reserved == 0

    def test_consume_error_after_save_is_not_a_failure(self) -> None:
        gate, service = _gate(2)
        gateway = InMemoryGateway()
        pipeline = UnitPipeline(default_steps(gate, _chain(), gateway), gate)

        with patch.object(
            service, "consume", side_effect=ConnectionError("license db unreachable")
        ):
            context = pipeline.run(_unit())

        assert context.failure is None
        assert context.document_id == "doc-1"
        assert len(gateway.documents) == 1
        assert gate.reserved == 0

    def test_failed_save_leaves_no_content_file(self, tmp_path: Path) -> None:
        gate, service = _gate(1)
        gateway = MagicMock()
        gateway.batch_exists.return_value = True
        gateway.save_document.side_effect = RuntimeError("connection reset")
        steps = default_steps(gate, _chain(), gateway, FileStore(tmp_path))

        context = UnitPipeline(steps, gate).run(_unit())

        assert context.failure is not None
        assert context.failure.kind == ErrorKind.PERSISTENCE_FAILED
        assert [p for p in tmp_path.rglob("*") if p.is_file()] == []
        assert service.remaining == 1

    def test_recognition_failure_releases_reservation(self) -> None:
        gate, service = _gate(1)
        failure = Failure(kind=ErrorKind.RECOGNITION_UNAVAILABLE, message="down")
        gateway = InMemoryGateway()
        pipeline = UnitPipeline(default_steps(gate, _chain(failure), gateway), gate)

        context = pipeline.run(_unit())

        assert context.failure == failure
        assert gate.reserved == 0
        assert service.remaining == 1
        assert gateway.documents == []

    def test_quota_exceeded_makes_no_recognition_call(self) -> None:
        gate, _service = _gate(0)
        chain = _chain()
        pipeline = UnitPipeline(default_steps(gate, chain, InMemoryGateway()), gate)

        context = pipeline.run(_unit())

        assert context.failure is not None
        assert context.failure.kind == ErrorKind.QUOTA_EXCEEDED
        chain.run.assert_not_called()

    def test_step_exception_becomes_persistence_failure(self) -> None:
        gate, service = _gate(1)
        steps = [ReserveQuotaStep(gate), RecognizeStep(_chain()), _ExplodingStep()]

        context = UnitPipeline(steps, gate).run(_unit())

        assert context.failure is not None
        assert context.failure.kind == ErrorKind.PERSISTENCE_FAILED
        assert "disk full" in context.failure.message
        assert gate.reserved == 0
        assert service.remaining == 1

    def test_save_error_is_persistence_failure(self) -> None:
        gate, service = _gate(1)
        gateway = MagicMock()
        gateway.batch_exists.return_value = True
        gateway.save_document.side_effect = RuntimeError("connection reset")
        pipeline = UnitPipeline(default_steps(gate, _chain(), gateway), gate)

        context = pipeline.run(_unit())

        assert context.failure is not None
        assert context.failure.kind == ErrorKind.PERSISTENCE_FAILED
        assert service.remaining == 1

    def test_halt_event_is_shared(self) -> None:
        gate, _service = _gate(1)
        halt_event = threading.Event()
        context = _unit()
        context.halt_event = halt_event
        pipeline = UnitPipeline(default_steps(gate, _chain(), InMemoryGateway(set())), gate)

        pipeline.run(context)

        assert halt_event.is_set()
