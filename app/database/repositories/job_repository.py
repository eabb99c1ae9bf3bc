from dataclasses import asdict
from datetime import datetime
from typing import Any

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from app.database.connection import get_connection
from app.database.exceptions import StorageError
from app.database.models import (
    ExtractedFields,
    ExtractionResult,
    JobStatus,
    NewReceiptJob,
    ReceiptJobRecord,
)
from app.database.repositories.base import BaseJobRepository

_COLUMNS = """
    id, user_id, status, attempts, original_name, mime_type, file_size,
    storage_path, ocr_text, ocr_confidence, extracted_fields,
    extraction_confidence, last_error, claimed_at, processed_at,
    discarded_at, created_at, updated_at
"""


class JobRepository(BaseJobRepository):
    """Database operations for the receipt_jobs table.

    State transitions are single conditional UPDATE statements, so two
    workers racing for the same row cannot both succeed.
    """

    def requeue_stale_jobs(self, stale_after_ms: int) -> list[ReceiptJobRecord]:
        """Requeue PROCESSING jobs whose claim is older than stale_after_ms."""
        return self._fetch_all(
            f"""
            UPDATE receipt_jobs
            SET status = 'PENDING', attempts = attempts + 1,
                claimed_at = NULL, updated_at = NOW()
            WHERE status = 'PROCESSING'
              AND discarded_at IS NULL
              AND claimed_at < NOW() - %s * INTERVAL '1 millisecond'
            RETURNING {_COLUMNS}
            """,
            (stale_after_ms,),
            commit=True,
        )

    def find_pending_jobs(self, limit: int) -> list[ReceiptJobRecord]:
        """Return up to limit PENDING jobs ordered by created_at."""
        return self._fetch_all(
            f"""
            SELECT {_COLUMNS}
            FROM receipt_jobs
            WHERE status = 'PENDING'
              AND discarded_at IS NULL
            ORDER BY created_at, id
            LIMIT %s
            """,
            (limit,),
        )

    def claim_job(self, job_id: str) -> ReceiptJobRecord | None:
        """Claim a PENDING job. None if another worker got there first."""
        return self._fetch_one(
            f"""
            UPDATE receipt_jobs
            SET status = 'PROCESSING', claimed_at = NOW(), updated_at = NOW()
            WHERE id = %s
              AND status = 'PENDING'
              AND discarded_at IS NULL
            RETURNING {_COLUMNS}
            """,
            (job_id,),
            commit=True,
        )

    def mark_completed(
        self, job_id: str, claimed_at: datetime | None, result: ExtractionResult
    ) -> bool:
        """Mark a job completed if it is still held by the given claim."""
        return self._execute(
            """
            UPDATE receipt_jobs
            SET status = 'COMPLETED', extracted_fields = %s,
                extraction_confidence = %s, last_error = NULL,
                claimed_at = NULL, processed_at = NOW(), updated_at = NOW()
            WHERE id = %s
              AND status = 'PROCESSING'
              AND claimed_at = %s
            """,
            (Jsonb(asdict(result.fields)), result.confidence, job_id, claimed_at),
        )

    def mark_failed(self, job_id: str, claimed_at: datetime | None, error: str) -> bool:
        """Mark a job permanently failed if it is still held by the given claim."""
        return self._execute(
            """
            UPDATE receipt_jobs
            SET status = 'FAILED', last_error = %s,
                claimed_at = NULL, processed_at = NOW(), updated_at = NOW()
            WHERE id = %s
              AND status = 'PROCESSING'
              AND claimed_at = %s
            """,
            (error, job_id, claimed_at),
        )

    def create(self, new_job: NewReceiptJob) -> ReceiptJobRecord:
        """Insert a PENDING job."""
        record = self._fetch_one(
            f"""
            INSERT INTO receipt_jobs
                (user_id, original_name, mime_type, file_size, storage_path,
                 ocr_text, ocr_confidence)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING {_COLUMNS}
            """,
            (
                new_job.user_id,
                new_job.original_name,
                new_job.mime_type,
                new_job.file_size,
                new_job.storage_path,
                new_job.ocr_text,
                new_job.ocr_confidence,
            ),
            commit=True,
        )
        if record is None:
            raise StorageError("Insert into receipt_jobs returned no row")
        return record

    def find_by_id(self, job_id: str, user_id: str | None = None) -> ReceiptJobRecord | None:
        """Find a job by ID. Useful for tests and operator tooling."""
        if user_id is None:
            return self._fetch_one(
                f"SELECT {_COLUMNS} FROM receipt_jobs WHERE id = %s",
                (job_id,),
            )
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM receipt_jobs WHERE id = %s AND user_id = %s",
            (job_id, user_id),
        )

    def find_by_user(self, user_id: str, limit: int = 50) -> list[ReceiptJobRecord]:
        return self._fetch_all(
            f"""
            SELECT {_COLUMNS}
            FROM receipt_jobs
            WHERE user_id = %s
              AND discarded_at IS NULL
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (user_id, limit),
        )

    def discard(self, job_id: str, user_id: str) -> bool:
        return self._execute(
            """
            UPDATE receipt_jobs
            SET status = 'DISCARDED', discarded_at = NOW(),
                claimed_at = NULL, updated_at = NOW()
            WHERE id = %s
              AND user_id = %s
              AND discarded_at IS NULL
            """,
            (job_id, user_id),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetch_all(
        self,
        query: str,
        params: tuple[Any, ...],
        commit: bool = False,
    ) -> list[ReceiptJobRecord]:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
            if commit:
                conn.commit()
        return [_row_to_record(row) for row in rows]

    def _fetch_one(
        self,
        query: str,
        params: tuple[Any, ...],
        commit: bool = False,
    ) -> ReceiptJobRecord | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                row = cur.fetchone()
            if commit:
                conn.commit()
        if row is None:
            return None
        return _row_to_record(row)

    def _execute(self, query: str, params: tuple[Any, ...]) -> bool:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                updated = cur.rowcount > 0
            conn.commit()
        return updated


def _row_to_record(row: dict[str, Any]) -> ReceiptJobRecord:
    raw_fields = row["extracted_fields"]
    return ReceiptJobRecord(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        status=JobStatus(row["status"]),
        attempts=row["attempts"],
        original_name=row["original_name"],
        mime_type=row["mime_type"],
        file_size=row["file_size"],
        storage_path=row["storage_path"],
        ocr_text=row["ocr_text"],
        ocr_confidence=row["ocr_confidence"],
        extracted_fields=ExtractedFields.from_dict(raw_fields) if raw_fields else None,
        extraction_confidence=row["extraction_confidence"],
        last_error=row["last_error"],
        claimed_at=row["claimed_at"],
        processed_at=row["processed_at"],
        discarded_at=row["discarded_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
