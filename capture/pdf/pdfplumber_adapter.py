import io

import pdfplumber

from capture.pdf.base import BasePdfReader
from capture.pdf.exceptions import CorruptDocumentError


class PdfPlumberAdapter(BasePdfReader):
    """Reads page text from PDF using pdfplumber."""

    def __init__(self, x_tolerance: float = 3.0) -> None:
        # Horizontal gap, in points, above which two characters are separate words.
        self._x_tolerance = x_tolerance

    def page_texts(self, pdf_bytes: bytes) -> list[str]:
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                pages = [
                    page.extract_text(x_tolerance=self._x_tolerance) or "" for page in pdf.pages
                ]
        except Exception as exc:
            raise CorruptDocumentError(f"pdfplumber could not read PDF: {exc}") from exc
        if not pages:
            raise CorruptDocumentError("PDF has no pages")
        return pages
