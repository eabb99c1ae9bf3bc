from abc import ABC, abstractmethod

DEFAULT_MAX_PAGES = 5


class BasePdfExtractor(ABC):
    """Contract for receipt PDF text extraction adapters.

    Receipts are short documents; only the first ``max_pages`` pages are read.
    """

    def __init__(self, max_pages: int = DEFAULT_MAX_PAGES) -> None:
        self._max_pages = max_pages

    @abstractmethod
    def extract(self, pdf_bytes: bytes) -> str:
        """Extract receipt text from PDF bytes, one line per text line.

        Raises:
            PdfExtractionError: if the bytes are not a readable PDF.
        """

    @staticmethod
    def _join_pages(pages: list[str]) -> str:
        lines = [line.rstrip() for page in pages for line in page.splitlines()]
        return "\n".join(line for line in lines if line.strip())
