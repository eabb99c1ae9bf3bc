import io

import pytest
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas


def _pdf_with_lines(*pages: list[str]) -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    for lines in pages:
        y = 720
        for line in lines:
            c.drawString(72, y, line)
            y -= 18
        c.showPage()
    c.save()
    return buf.getvalue()


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Generate a minimal single-page PDF with known text content."""
    return _pdf_with_lines(["Hello PDF World"])


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    """Generate a two-page PDF with known text on each page."""
    return _pdf_with_lines(["Page one content"], ["Page two content"])


@pytest.fixture()
def empty_pdf_bytes() -> bytes:
    """Generate a valid PDF with no text content (blank page)."""
    return _pdf_with_lines([])


@pytest.fixture()
def receipt_pdf_bytes() -> bytes:
    """A one-page store receipt."""
    return _pdf_with_lines(
        [
            "Corner Market",
            "03/15/2024",
            "Coffee Beans 12.99",
            "Oat Milk 4.50",
            "Subtotal 17.49",
            "Tax 1.40",
            "TOTAL 18.89",
        ]
    )
