import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from app.config.settings import Settings
from app.database.exceptions import StorageError
from app.database.models import ReceiptJobRecord
from app.database.repositories.base import BaseJobRepository
from app.logging.logger import Log
from app.worker.job_runner import JobOutcome, JobRunner, ProcessFn, ProcessJobResult


@dataclass(frozen=True)
class WorkerOptions:
    concurrency: int
    stale_after_ms: int
    attempt_limit: int
    batch_size: int | None = None

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.batch_size is not None and self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")

    @property
    def effective_batch_size(self) -> int:
        return self.batch_size if self.batch_size is not None else self.concurrency

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkerOptions":
        return cls(
            concurrency=settings.worker_concurrency,
            stale_after_ms=settings.stale_after_seconds * 1000,
            attempt_limit=settings.max_job_attempts,
            batch_size=settings.worker_batch_size,
        )


@dataclass
class WorkerRunResult:
    """Summary of a single run; lost claims are listed but not counted."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    results: list[ProcessJobResult] = field(default_factory=list)

    def add(self, result: ProcessJobResult) -> None:
        self.results.append(result)
        if result.outcome is JobOutcome.SKIPPED:
            return
        self.processed += 1
        if result.outcome is JobOutcome.COMPLETED:
            self.succeeded += 1
        else:
            self.failed += 1


class Worker:
    """One run: requeue stale -> find pending -> claim and process in a bounded pool."""

    def __init__(
        self,
        job_repo: BaseJobRepository,
        process_fn: ProcessFn,
        options: WorkerOptions,
        poll_interval_seconds: float = 5,
    ) -> None:
        self._job_repo = job_repo
        self._options = options
        self._poll_interval_seconds = poll_interval_seconds
        self._job_runner = JobRunner(process_fn, job_repo, options.attempt_limit)

    def run_once(self) -> WorkerRunResult:
        """Process up to one batch of pending jobs and return this run's summary."""
        summary = WorkerRunResult()
        try:
            requeued = self._job_repo.requeue_stale_jobs(self._options.stale_after_ms)
            if requeued:
                Log.warning(
                    f"Requeued {len(requeued)} stale jobs",
                    job_ids=",".join(job.id for job in requeued),
                )
            jobs = self._job_repo.find_pending_jobs(self._options.effective_batch_size)
        except StorageError as exc:
            Log.warning(f"Job store unavailable, skipping run: {exc}")
            return summary

        if not jobs:
            Log.debug("No pending jobs")
            return summary

        with ThreadPoolExecutor(
            max_workers=self._options.concurrency, thread_name_prefix="receipt-worker"
        ) as pool:
            for result in pool.map(self._handle_job, jobs):
                summary.add(result)

        Log.info(
            f"Worker run finished: {summary.processed} processed, "
            f"{summary.succeeded} succeeded, {summary.failed} failed"
        )
        return summary

    def run_forever(self, max_runs: int | None = None) -> None:
        """Repeat run_once until interrupted.

        If max_runs is set, stop after that many runs (for testing).
        """
        Log.info("Worker started, polling for jobs")
        runs = 0
        try:
            while max_runs is None or runs < max_runs:
                summary = self.run_once()
                runs += 1
                if summary.processed == 0 and (max_runs is None or runs < max_runs):
                    time.sleep(self._poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info("Worker shutting down gracefully")

    def _handle_job(self, job: ReceiptJobRecord) -> ProcessJobResult:
        try:
            claimed = self._job_repo.claim_job(job.id)
            if claimed is None:
                Log.debug(f"Job {job.id} already claimed elsewhere, skipping")
                return ProcessJobResult(job.id, JobOutcome.SKIPPED)
            return self._job_runner.run(claimed)
        except StorageError as exc:
            Log.warning(f"Storage error while handling job {job.id}: {exc}", job_id=job.id)
            return ProcessJobResult(job.id, JobOutcome.STORAGE_ERROR, str(exc))


def run_worker(
    job_repo: BaseJobRepository,
    process_fn: ProcessFn,
    options: WorkerOptions,
) -> WorkerRunResult:
    """Run a single worker batch; schedulers call this repeatedly."""
    return Worker(job_repo, process_fn, options).run_once()
