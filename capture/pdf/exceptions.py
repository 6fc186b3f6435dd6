class PdfExtractionError(Exception):
    """Raised when text cannot be extracted from a PDF."""


class CorruptDocumentError(PdfExtractionError):
    """Raised when a PDF cannot be opened or parsed at all."""
