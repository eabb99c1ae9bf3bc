from abc import ABC, abstractmethod
from datetime import datetime

from app.database.models import ExtractionResult, NewReceiptJob, ReceiptJobRecord


class BaseJobRepository(ABC):
    """Contract for receipt job persistence.

    Every method may raise StorageError when the underlying store fails.
    """

    @abstractmethod
    def requeue_stale_jobs(self, stale_after_ms: int) -> list[ReceiptJobRecord]:
        """Return PROCESSING jobs claimed more than stale_after_ms ago to PENDING.

        Each requeued job has its attempts incremented by one and claimed_at
        cleared. Returns the requeued jobs.
        """

    @abstractmethod
    def find_pending_jobs(self, limit: int) -> list[ReceiptJobRecord]:
        """Return up to limit PENDING jobs, oldest first."""

    @abstractmethod
    def claim_job(self, job_id: str) -> ReceiptJobRecord | None:
        """Atomically move a PENDING job to PROCESSING.

        Returns the claimed job, or None if it was no longer PENDING.
        """

    @abstractmethod
    def mark_completed(
        self, job_id: str, claimed_at: datetime | None, result: ExtractionResult
    ) -> bool:
        """PROCESSING -> COMPLETED with the extraction persisted.

        claimed_at is the value returned by claim_job. Returns False when the
        job is no longer held by that claim (requeued, re-claimed or discarded).
        """

    @abstractmethod
    def mark_failed(self, job_id: str, claimed_at: datetime | None, error: str) -> bool:
        """PROCESSING -> FAILED with last_error persisted.

        Same claim check as mark_completed.
        """

    @abstractmethod
    def create(self, new_job: NewReceiptJob) -> ReceiptJobRecord:
        """Insert a PENDING job for an uploaded receipt."""

    @abstractmethod
    def find_by_id(self, job_id: str, user_id: str | None = None) -> ReceiptJobRecord | None:
        """Find a job by ID, optionally scoped to its owner."""

    @abstractmethod
    def find_by_user(self, user_id: str, limit: int = 50) -> list[ReceiptJobRecord]:
        """List a user's non-discarded jobs, newest first."""

    @abstractmethod
    def discard(self, job_id: str, user_id: str) -> bool:
        """Soft-delete a job. Returns False if it does not exist or is already discarded."""
