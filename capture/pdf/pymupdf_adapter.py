import pymupdf

from capture.pdf.base import BasePdfReader
from capture.pdf.exceptions import CorruptDocumentError


class PyMuPdfAdapter(BasePdfReader):
    """Reads page text from PDF using PyMuPDF.

    With ``sort`` on, text blocks come back top-left to bottom-right instead of
    in content-stream order.
    """

    def __init__(self, sort: bool = False) -> None:
        self._sort = sort

    def page_texts(self, pdf_bytes: bytes) -> list[str]:
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                pages = [page.get_text(sort=self._sort) for page in doc]
        except Exception as exc:
            raise CorruptDocumentError(f"pymupdf could not read PDF: {exc}") from exc
        if not pages:
            raise CorruptDocumentError("PDF has no pages")
        return pages
