from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from app.database.models import ExtractionResult, ReceiptJobRecord
from app.database.repositories.base import BaseJobRepository
from app.logging.logger import Log
from app.processor.exceptions import ProcessorError

ProcessFn = Callable[[ReceiptJobRecord], ExtractionResult]

GENERIC_FAILURE_MESSAGE = ProcessorError.public_message
ATTEMPTS_EXHAUSTED_MESSAGE = "Processing was abandoned after repeated interruptions."
SUPERSEDED_MESSAGE = "Job was requeued or discarded before its result was stored."


class JobOutcome(str, Enum):
    """What happened to one job during a worker run."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    STORAGE_ERROR = "STORAGE_ERROR"


@dataclass(frozen=True)
class ProcessJobResult:
    job_id: str
    outcome: JobOutcome
    error: str | None = None


class JobRunner:
    """Run one claimed job and record its terminal state."""

    def __init__(
        self,
        process_fn: ProcessFn,
        job_repo: BaseJobRepository,
        attempt_limit: int,
    ) -> None:
        self._process_fn = process_fn
        self._job_repo = job_repo
        self._attempt_limit = attempt_limit

    def run(self, job: ReceiptJobRecord) -> ProcessJobResult:
        """Execute a single claimed job.

        StorageError from the repository propagates to the caller; the job's
        state is then whatever the store last committed.
        """
        if job.attempts >= self._attempt_limit:
            Log.warning(
                f"Job {job.id} reached attempt limit ({job.attempts}/{self._attempt_limit})",
                job_id=job.id,
            )
            if not self._job_repo.mark_failed(job.id, job.claimed_at, ATTEMPTS_EXHAUSTED_MESSAGE):
                return self._superseded(job)
            return ProcessJobResult(job.id, JobOutcome.FAILED, ATTEMPTS_EXHAUSTED_MESSAGE)

        Log.info(f"Running job {job.id} (attempts {job.attempts})", job_id=job.id)
        try:
            result = self._process_fn(job)
        except Exception as exc:
            return self._handle_failure(job, exc)

        if not self._job_repo.mark_completed(job.id, job.claimed_at, result):
            return self._superseded(job)

        Log.info(f"Job {job.id} completed", job_id=job.id, confidence=result.confidence)
        return ProcessJobResult(job.id, JobOutcome.COMPLETED)

    def _handle_failure(self, job: ReceiptJobRecord, exc: Exception) -> ProcessJobResult:
        """Ordinary failures are terminal; only a stale requeue retries a job."""
        message = exc.public_message if isinstance(exc, ProcessorError) else GENERIC_FAILURE_MESSAGE
        Log.error(f"Job {job.id} failed: {exc!r}", job_id=job.id)
        if not self._job_repo.mark_failed(job.id, job.claimed_at, message):
            return self._superseded(job)
        return ProcessJobResult(job.id, JobOutcome.FAILED, message)

    def _superseded(self, job: ReceiptJobRecord) -> ProcessJobResult:
        Log.warning(f"Job {job.id} is no longer held by this claim, result dropped", job_id=job.id)
        return ProcessJobResult(job.id, JobOutcome.FAILED, SUPERSEDED_MESSAGE)
