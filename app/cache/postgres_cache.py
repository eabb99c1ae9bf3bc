from dataclasses import asdict

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from app.cache.base import BaseExtractionCache
from app.database.connection import get_connection
from app.extraction.models import ReceiptExtraction
from app.logging.logger import Log


class PostgresExtractionCache(BaseExtractionCache):
    """Extraction cache in the receipt_extraction_cache table.

    Shared by every worker process. Expired rows are deleted when read.

    Raises:
        StorageError: from any method when the database is unreachable.
    """

    def get(self, file_hash: str) -> ReceiptExtraction | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT result, expires_at <= NOW() AS expired
                    FROM receipt_extraction_cache
                    WHERE hash = %s
                    """,
                    (file_hash,),
                )
                row = cur.fetchone()
                if row is None:
                    return None
                if row["expired"]:
                    cur.execute("DELETE FROM receipt_extraction_cache WHERE hash = %s", (file_hash,))
                    conn.commit()
                    Log.info("Receipt cache miss (expired)", cache_key=file_hash[:8])
                    return None

        Log.info("Receipt cache hit", cache_key=file_hash[:8])
        return ReceiptExtraction.from_dict(row["result"])

    def set(self, file_hash: str, extraction: ReceiptExtraction) -> None:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO receipt_extraction_cache (hash, result, cached_at, expires_at)
                    VALUES (%s, %s, NOW(), NOW() + %s * INTERVAL '1 second')
                    ON CONFLICT (hash) DO UPDATE
                    SET result = EXCLUDED.result,
                        cached_at = EXCLUDED.cached_at,
                        expires_at = EXCLUDED.expires_at
                    """,
                    (file_hash, Jsonb(asdict(extraction)), self._ttl_seconds),
                )
            conn.commit()
        Log.info("Receipt cached", cache_key=file_hash[:8], ttl_seconds=self._ttl_seconds)

    def delete(self, file_hash: str) -> None:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM receipt_extraction_cache WHERE hash = %s", (file_hash,))
            conn.commit()
