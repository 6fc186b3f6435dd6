import pytest

from tests.helpers import build_image, build_pdf


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Generate a minimal single-page PDF with known text content."""
    return build_pdf(["Invoice 1001 from Acme Corporation, total 42.00"])


@pytest.fixture()
def five_page_pdf_bytes() -> bytes:
    """Generate a five-page PDF with distinct text on each page."""
    return build_pdf([f"Invoice page {n} with enough text to recognize" for n in range(1, 6)])


@pytest.fixture()
def blank_separated_pdf_bytes() -> bytes:
    """Two documents of two pages each, separated by a blank page."""
    return build_pdf(
        [
            "First document, page one of the quarterly account statement",
            "First document, page two of the quarterly account statement",
            "",
            "Second document, page one of the quarterly account statement",
            "Second document, page two of the quarterly account statement",
        ]
    )


@pytest.fixture()
def barcode_separated_pdf_bytes() -> bytes:
    """Two documents separated by a printed separator sheet."""
    return build_pdf(
        [
            "Purchase order 77 for office supplies",
            "SEPARATOR SHEET PATCH-T",
            "Purchase order 78 for printer toner",
            "Purchase order 78 continued on page two",
        ]
    )


@pytest.fixture()
def empty_pdf_bytes() -> bytes:
    """Generate a valid PDF with no text content (blank page)."""
    return build_pdf([""])


@pytest.fixture()
def png_bytes() -> bytes:
    return build_image(640, 480)


@pytest.fixture()
def large_png_bytes() -> bytes:
    return build_image(4000, 3000)


@pytest.fixture()
def tiff_bytes() -> bytes:
    return build_image(3000, 1000, fmt="TIFF")
