"""Partitions a multi-page PDF into logical documents.

Supported separation methods:
- page_count: fixed number of pages per document, last one possibly shorter.
- blank_page: pages with almost no text act as separators.
- barcode: separator sheets recognised by printed patterns.
- none: the whole file is one document (single-page inputs only; see
  ``resolve_policy``).
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath

from capture.logging.logger import Log
from capture.pdf.base import BasePdfReader

_SEPARATOR_WORDS = ("separator", "divider")


class SeparationMethod(str, Enum):
    PAGE_COUNT = "page_count"
    BLANK_PAGE = "blank_page"
    BARCODE = "barcode"
    NONE = "none"


@dataclass(frozen=True)
class SeparationPolicy:
    """How a PDF is split into logical documents."""

    method: SeparationMethod = SeparationMethod.NONE
    pages_per_document: int = 1
    blank_page_threshold: int = 50  # chars of text below which a page is blank
    barcode_patterns: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.pages_per_document < 1:
            raise ValueError("pages_per_document must be at least 1")

    @classmethod
    def from_config(cls, config: dict[str, object] | None) -> "SeparationPolicy":
        """Build a policy from a project's stored separation config."""
        if not config:
            return cls()
        method = SeparationMethod(str(config.get("method", "none")))
        pages = _option(config, "pages_per_document", "pagesPerDocument", 1)
        threshold = _option(config, "blank_page_threshold", "blankPageThreshold", 50)
        patterns = _option(config, "barcode_patterns", "barcodePatterns", [])
        if not isinstance(patterns, (list, tuple)):
            raise ValueError("barcode_patterns must be a list")
        return cls(
            method=method,
            pages_per_document=int(str(pages)),
            blank_page_threshold=int(str(threshold)),
            barcode_patterns=tuple(str(p) for p in patterns),
        )


def _option(config: dict[str, object], key: str, camel_key: str, default: object) -> object:
    """Read a snake_case or camelCase key. An explicit 0 is kept, not defaulted."""
    value = config.get(key)
    if value is None:
        value = config.get(camel_key)
    return default if value is None else value


@dataclass(frozen=True)
class Boundary:
    """A contiguous, 1-based inclusive page range assigned to one document."""

    index: int
    start_page: int
    end_page: int
    separator_type: str

    @property
    def page_count(self) -> int:
        return self.end_page - self.start_page + 1


def resolve_policy(policy: SeparationPolicy, page_count: int) -> SeparationPolicy:
    """Fall back to one page per document when 'none' is used on a multi-page file."""
    if policy.method == SeparationMethod.NONE and page_count > 1:
        return SeparationPolicy(method=SeparationMethod.PAGE_COUNT, pages_per_document=1)
    return policy


def document_name(file_name: str, index: int, total: int) -> str:
    """Display name of the ``index``-th (0-based) document split from ``file_name``."""
    if total == 1:
        return file_name
    stem = file_name[:-4] if file_name.lower().endswith(".pdf") else PurePath(file_name).stem
    return f"{stem}_doc{index + 1}.pdf"


def split_by_page_count(total_pages: int, pages_per_document: int) -> list[Boundary]:
    if total_pages < 1:
        raise ValueError("total_pages must be at least 1")
    if pages_per_document < 1:
        raise ValueError("pages_per_document must be at least 1")
    return [
        Boundary(
            index=i,
            start_page=start,
            end_page=min(start + pages_per_document - 1, total_pages),
            separator_type=SeparationMethod.PAGE_COUNT.value,
        )
        for i, start in enumerate(range(1, total_pages + 1, pages_per_document))
    ]


def split_by_separators(
    total_pages: int,
    separator_pages: list[int],
    separator_type: str,
) -> list[Boundary]:
    """Documents are the runs of pages between separator pages."""
    ranges: list[tuple[int, int]] = []
    current_start = 1
    for page in sorted(separator_pages):
        if page > current_start:
            ranges.append((current_start, page - 1))
        current_start = max(current_start, page + 1)
    if current_start <= total_pages:
        ranges.append((current_start, total_pages))

    if not ranges:
        return [whole_document(total_pages)]
    return [
        Boundary(index=i, start_page=start, end_page=end, separator_type=separator_type)
        for i, (start, end) in enumerate(ranges)
    ]


def whole_document(total_pages: int) -> Boundary:
    return Boundary(
        index=0,
        start_page=1,
        end_page=total_pages,
        separator_type=SeparationMethod.NONE.value,
    )


class BoundaryAnalyzer:
    """Computes document boundaries for a PDF under a separation policy."""

    def __init__(self, reader: BasePdfReader) -> None:
        self._reader = reader

    def analyze(self, pdf_bytes: bytes, policy: SeparationPolicy) -> list[Boundary]:
        """Return ordered boundaries for ``pdf_bytes``.

        Raises:
            CorruptDocumentError: if the PDF cannot be read. No boundaries
                are produced in that case.
        """
        return self.analyze_pages(self.read_pages(pdf_bytes), policy)

    def read_pages(self, pdf_bytes: bytes) -> list[str]:
        return self._reader.page_texts(pdf_bytes)

    def analyze_pages(self, page_texts: list[str], policy: SeparationPolicy) -> list[Boundary]:
        total = len(page_texts)
        effective = resolve_policy(policy, total)

        if effective.method == SeparationMethod.PAGE_COUNT:
            boundaries = split_by_page_count(total, effective.pages_per_document)
        elif effective.method == SeparationMethod.BLANK_PAGE:
            blank = [
                number
                for number, text in enumerate(page_texts, start=1)
                if len(text.strip()) < effective.blank_page_threshold
            ]
            boundaries = split_by_separators(total, blank, SeparationMethod.BLANK_PAGE.value)
        elif effective.method == SeparationMethod.BARCODE:
            separators = [
                number
                for number, text in enumerate(page_texts, start=1)
                if self._is_separator_sheet(text, effective.barcode_patterns)
            ]
            boundaries = split_by_separators(total, separators, SeparationMethod.BARCODE.value)
        else:
            boundaries = [whole_document(total)]

        Log.debug(
            f"Split {total} pages into {len(boundaries)} documents "
            f"using '{effective.method.value}'"
        )
        return boundaries

    @staticmethod
    def _is_separator_sheet(text: str, patterns: tuple[str, ...]) -> bool:
        lowered = text.lower()
        if any(pattern.lower() in lowered for pattern in patterns if pattern):
            return True
        return any(word in lowered for word in _SEPARATOR_WORDS)
