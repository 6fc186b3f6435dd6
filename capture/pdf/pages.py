import pymupdf

from capture.pdf.exceptions import CorruptDocumentError


def extract_page_range(pdf_bytes: bytes, start_page: int, end_page: int) -> bytes:
    """Copy pages ``start_page..end_page`` (1-based, inclusive) into a new PDF.

    Raises:
        CorruptDocumentError: if the source PDF cannot be opened.
        ValueError: if the range lies outside the document.
    """
    try:
        source = pymupdf.open(stream=pdf_bytes, filetype="pdf")  # type: ignore[no-untyped-call]
    except Exception as exc:
        raise CorruptDocumentError(f"pymupdf could not read PDF: {exc}") from exc

    with source:
        if start_page < 1 or end_page > source.page_count or start_page > end_page:
            raise ValueError(
                f"Page range {start_page}-{end_page} outside document "
                f"of {source.page_count} pages"
            )
        if start_page == 1 and end_page == source.page_count:
            return pdf_bytes
        with pymupdf.open() as target:  # type: ignore[no-untyped-call]
            target.insert_pdf(source, from_page=start_page - 1, to_page=end_page - 1)
            return target.tobytes(garbage=3, deflate=True)
