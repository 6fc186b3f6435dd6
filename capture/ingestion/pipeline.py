import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar

from capture.ingestion.errors import ErrorKind, Failure
from capture.ingestion.models import IngestionContext, LogicalDocument
from capture.logging.logger import Log
from capture.quota.gate import ResourceGate
from capture.quota.models import Reservation
from capture.recognition.models import RecognitionResult


@dataclass(slots=True)
class UnitContext:
    document: LogicalDocument
    ingestion: IngestionContext
    halt_event: threading.Event = field(default_factory=threading.Event)
    reservation: Reservation | None = None
    result: RecognitionResult | None = None
    content_ref: str = ""
    document_id: str | None = None
    failure: Failure | None = None


class PipelineStep(ABC):
    failure_kind: ClassVar[ErrorKind] = ErrorKind.PERSISTENCE_FAILED

    @abstractmethod
    def run(self, context: UnitContext) -> UnitContext:
        raise NotImplementedError


class UnitPipeline:
    """Runs steps in order for one logical document, stopping at the first failure.

    An exception raised by a step becomes a failure of that step's kind. A
    reservation still open when the pipeline ends is released, so a unit
    that did not finish never consumes quota.
    """

    def __init__(self, steps: list[PipelineStep], gate: ResourceGate) -> None:
        self._steps = steps
        self._gate = gate

    def run(self, context: UnitContext) -> UnitContext:
        try:
            for step in self._steps:
                try:
                    context = step.run(context)
                except Exception as exc:
                    context.failure = Failure(kind=step.failure_kind, message=str(exc))
                if context.failure is not None:
                    Log.error(
                        f"{context.document.name}: {type(step).__name__} failed "
                        f"[{context.failure.kind.value}] {context.failure.message}"
                    )
                    break
        finally:
            if context.reservation is not None:
                self._gate.release(context.reservation)
                context.reservation = None
        return context
