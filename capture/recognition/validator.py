"""Validates a raw recognition response and builds a RecognitionResult."""

from typing import Any

from capture.recognition.exceptions import RecognitionValidationError
from capture.recognition.models import RecognitionResult

_MAX_LINE_ITEMS = 500


def validate_and_build(data: Any) -> RecognitionResult:
    """Validate parsed JSON from the service.

    Accepts ``lineItems`` or ``line_items`` for the table rows. ``metadata``
    values are kept as returned; ``None`` metadata means no fields.

    Raises:
        RecognitionValidationError: on any shape violation or an error envelope.
    """
    if not isinstance(data, dict):
        raise RecognitionValidationError("Response must be a JSON object")
    if data.get("error"):
        raise RecognitionValidationError(f"Service returned error: {data['error']}")

    text = _build_text(data.get("text"))
    metadata = _build_metadata(data.get("metadata"))
    raw_items = data["lineItems"] if "lineItems" in data else data.get("line_items")
    line_items = _build_line_items(raw_items)
    return RecognitionResult(text=text, metadata=metadata, line_items=line_items)


def _build_text(raw: Any) -> str:
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raise RecognitionValidationError("'text' must be a string")
    return raw


def _build_metadata(raw: Any) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise RecognitionValidationError("'metadata' must be an object")
    for key in raw:
        if not isinstance(key, str) or not key:
            raise RecognitionValidationError("'metadata' keys must be non-empty strings")
    return dict(raw)


def _build_line_items(raw: Any) -> list[dict[str, Any]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise RecognitionValidationError("'lineItems' must be a list")
    if len(raw) > _MAX_LINE_ITEMS:
        raise RecognitionValidationError(
            f"Too many line items: {len(raw)} (max {_MAX_LINE_ITEMS})"
        )
    items: list[dict[str, Any]] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise RecognitionValidationError(f"Line item at index {i} must be an object")
        items.append(dict(item))
    return items
