import hashlib
from abc import ABC, abstractmethod

from app.extraction.models import ReceiptExtraction

DEFAULT_TTL_DAYS = 7
SECONDS_PER_DAY = 24 * 60 * 60


def compute_file_hash(data: bytes) -> str:
    """SHA-256 hex digest of a receipt file; identical uploads share a key."""
    return hashlib.sha256(data).hexdigest()


class BaseExtractionCache(ABC):
    """Contract for storing LLM extraction results by receipt file hash.

    Entries expire ``ttl_days`` after they were written.
    """

    def __init__(self, ttl_days: int = DEFAULT_TTL_DAYS) -> None:
        self._ttl_seconds = ttl_days * SECONDS_PER_DAY

    @abstractmethod
    def get(self, file_hash: str) -> ReceiptExtraction | None:
        """Return the cached extraction, or None when missing or expired."""

    @abstractmethod
    def set(self, file_hash: str, extraction: ReceiptExtraction) -> None:
        """Store or replace the extraction for file_hash."""

    @abstractmethod
    def delete(self, file_hash: str) -> None:
        """Drop the entry for file_hash if there is one."""
