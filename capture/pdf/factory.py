from collections.abc import Callable

from capture.config.settings import Settings
from capture.pdf.base import BasePdfReader
from capture.pdf.pdfplumber_adapter import PdfPlumberAdapter
from capture.pdf.pymupdf_adapter import PyMuPdfAdapter

_ALIASES = {"fitz": "pymupdf"}


class PdfReaderFactory:
    """Builds the configured PDF reader with its engine-specific options."""

    BUILDERS: dict[str, Callable[[Settings], BasePdfReader]] = {
        "pdfplumber": lambda s: PdfPlumberAdapter(x_tolerance=s.pdf_x_tolerance),
        "pymupdf": lambda s: PyMuPdfAdapter(sort=s.pdf_sort_text),
    }

    @classmethod
    def engine_name(cls, engine: str) -> str:
        """Canonical engine name for ``engine``, accepting aliases and any case."""
        name = engine.strip().lower()
        name = _ALIASES.get(name, name)
        if name not in cls.BUILDERS:
            raise ValueError(
                f"Unknown PDF engine '{engine}'. Choose from: {sorted(cls.BUILDERS)}"
            )
        return name

    @classmethod
    def create(cls, settings: Settings) -> BasePdfReader:
        name = cls.engine_name(settings.pdf_engine)
        return cls.BUILDERS[name](settings)
