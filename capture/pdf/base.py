from abc import ABC, abstractmethod


class BasePdfReader(ABC):
    """Contract for all PDF text reading adapters."""

    @abstractmethod
    def page_texts(self, pdf_bytes: bytes) -> list[str]:
        """Extract the text of every page, in page order.

        Args:
            pdf_bytes: Raw PDF file content.

        Returns:
            One string per page; pages without a text layer yield "".

        Raises:
            CorruptDocumentError: if the PDF cannot be opened or has no pages.
        """

    def extract(self, pdf_bytes: bytes, start_page: int = 1, end_page: int | None = None) -> str:
        """Extract the text of pages ``start_page..end_page`` (1-based, inclusive)."""
        pages = self.page_texts(pdf_bytes)
        last = len(pages) if end_page is None else min(end_page, len(pages))
        return "\n".join(pages[start_page - 1 : last]).strip()
