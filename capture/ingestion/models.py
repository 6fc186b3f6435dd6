from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Any

from capture.ingestion.errors import UnitFailure
from capture.pdf.separation import SeparationPolicy
from capture.recognition.models import RecognitionRequest

_IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"})
_TIFF_EXTENSIONS = frozenset({".tif", ".tiff"})


class FileKind(str, Enum):
    PDF = "pdf"
    IMAGE = "image"
    TIFF = "tiff"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class UploadUnit:
    """One file as submitted by the user. Lives only for the duration of a run."""

    name: str
    mime_type: str
    data: bytes = field(repr=False)

    @property
    def kind(self) -> FileKind:
        mime = self.mime_type.lower()
        extension = PurePath(self.name).suffix.lower()
        if mime == "application/pdf" or extension == ".pdf":
            return FileKind.PDF
        if mime == "image/tiff" or extension in _TIFF_EXTENSIONS:
            return FileKind.TIFF
        if mime.startswith("image/") or extension in _IMAGE_EXTENSIONS:
            return FileKind.IMAGE
        return FileKind.UNSUPPORTED


@dataclass(frozen=True)
class IngestionContext:
    """Project and batch selection plus the project's extraction settings."""

    project_id: str | None
    batch_id: str | None
    extraction_fields: tuple[dict[str, Any], ...] = ()
    table_fields: tuple[dict[str, Any], ...] = ()
    checked_fields_enabled: bool = False
    tenant_id: str | None = None
    separation_policy: SeparationPolicy = field(default_factory=SeparationPolicy)

    def text_request(self, text: str) -> RecognitionRequest:
        return RecognitionRequest(text=text, **self._request_options())

    def image_request(self, data_url: str) -> RecognitionRequest:
        return RecognitionRequest(image=data_url, **self._request_options())

    def _request_options(self) -> dict[str, Any]:
        return {
            "extraction_fields": self.extraction_fields,
            "table_fields": self.table_fields,
            "checked_fields_enabled": self.checked_fields_enabled,
            "tenant_id": self.tenant_id,
        }


@dataclass
class LogicalDocument:
    """The unit of recognition and persistence."""

    index: int
    name: str
    source: UploadUnit
    start_page: int = 1
    end_page: int = 1
    separator_type: str = "none"
    # Text layer of this document's own pages, read once while splitting.
    page_texts: tuple[str, ...] = field(default=(), repr=False)
    text: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    line_items: list[dict[str, Any]] = field(default_factory=list)

    @property
    def kind(self) -> FileKind:
        return self.source.kind


class RunStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"
    PRECONDITION_FAILED = "precondition_failed"
    CANCELLED = "cancelled"


@dataclass
class IngestionReport:
    """Aggregated outcome of one orchestrator run."""

    batch_id: str | None
    status: RunStatus
    succeeded: list[str] = field(default_factory=list)
    failures: list[UnitFailure] = field(default_factory=list)

    @property
    def failed_names(self) -> list[str]:
        return [failure.unit_name for failure in self.failures]

    def summary(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "status": self.status.value,
            "succeeded": list(self.succeeded),
            "failures": [failure.to_dict() for failure in self.failures],
        }
