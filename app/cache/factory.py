from typing import ClassVar

from app.cache.base import BaseExtractionCache
from app.cache.memory_cache import InMemoryExtractionCache
from app.cache.postgres_cache import PostgresExtractionCache
from app.config.settings import Settings


class ExtractionCacheFactory:
    """Selects the LLM result cache named by ``llm_cache_backend``, or None."""

    BACKENDS: ClassVar[dict[str, type[BaseExtractionCache]]] = {
        "postgres": PostgresExtractionCache,
        "memory": InMemoryExtractionCache,
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseExtractionCache | None:
        backend = settings.llm_cache_backend.lower()
        if backend in ("", "none"):
            return None
        cache_cls = cls.BACKENDS.get(backend)
        if cache_cls is None:
            raise ValueError(
                f"Unknown LLM cache backend '{backend}'. Choose from: {['none', *cls.BACKENDS]}"
            )
        return cache_cls(ttl_days=settings.llm_cache_ttl_days)
