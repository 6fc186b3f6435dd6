from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RecognitionRequest:
    """Payload for the recognition service: text mode or image mode, never both."""

    text: str | None = None
    image: str | None = None  # data URL
    extraction_fields: tuple[dict[str, Any], ...] = ()
    table_fields: tuple[dict[str, Any], ...] = ()
    checked_fields_enabled: bool = False
    tenant_id: str | None = None

    def __post_init__(self) -> None:
        if (self.text is None) == (self.image is None):
            raise ValueError("Exactly one of text or image must be set")

    @property
    def mode(self) -> str:
        return "text" if self.text is not None else "image"

    def to_payload(self) -> dict[str, Any]:
        """Wire representation sent to the recognition service."""
        payload: dict[str, Any] = {
            "extractionFields": list(self.extraction_fields),
            "tableFields": list(self.table_fields),
            "checkedFieldsEnabled": self.checked_fields_enabled,
            "tenantId": self.tenant_id,
        }
        if self.text is not None:
            payload["text"] = self.text
        else:
            payload["image"] = self.image
        return payload


@dataclass(frozen=True)
class RecognitionResult:
    """Output of the recognition service for one logical document."""

    text: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    line_items: list[dict[str, Any]] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return bool(self.text.strip() or self.metadata or self.line_items)
