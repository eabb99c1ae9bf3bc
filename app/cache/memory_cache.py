import threading
import time
from collections.abc import Callable

from app.cache.base import DEFAULT_TTL_DAYS, BaseExtractionCache
from app.extraction.models import ReceiptExtraction


class InMemoryExtractionCache(BaseExtractionCache):
    """Extraction cache kept in process memory; lost on restart."""

    def __init__(
        self,
        ttl_days: int = DEFAULT_TTL_DAYS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(ttl_days)
        self._clock = clock
        self._entries: dict[str, tuple[ReceiptExtraction, float]] = {}
        self._lock = threading.Lock()

    def get(self, file_hash: str) -> ReceiptExtraction | None:
        with self._lock:
            entry = self._entries.get(file_hash)
            if entry is None:
                return None
            extraction, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[file_hash]
                return None
            return extraction

    def set(self, file_hash: str, extraction: ReceiptExtraction) -> None:
        with self._lock:
            self._entries[file_hash] = (extraction, self._clock() + self._ttl_seconds)

    def delete(self, file_hash: str) -> None:
        with self._lock:
            self._entries.pop(file_hash, None)
