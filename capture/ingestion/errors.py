"""Closed failure taxonomy shared by every stage of an ingestion run.

Stages report failures as values rather than raising, so callers can branch
on ``kind`` without inspecting messages.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    PRECONDITION_FAILED = "PreconditionFailed"
    CORRUPT_DOCUMENT = "CorruptDocument"
    QUOTA_EXCEEDED = "QuotaExceeded"
    RECOGNITION_UNAVAILABLE = "RecognitionUnavailable"
    INVALID_RESPONSE = "InvalidResponse"
    PAYLOAD_TOO_LARGE = "PayloadTooLarge"
    PERSISTENCE_FAILED = "PersistenceFailed"
    UNSUPPORTED_FILE = "UnsupportedFile"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class Failure:
    """A terminal error for one unit of work."""

    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class UnitFailure:
    """A failure attributed to a named unit (a logical document or a file)."""

    unit_name: str
    kind: ErrorKind
    message: str

    @classmethod
    def from_failure(cls, unit_name: str, failure: Failure) -> "UnitFailure":
        return cls(unit_name=unit_name, kind=failure.kind, message=failure.message)

    def to_dict(self) -> dict[str, str]:
        return {
            "unit_name": self.unit_name,
            "kind": self.kind.value,
            "message": self.message,
        }
