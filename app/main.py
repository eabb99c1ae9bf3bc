import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

from app.config.settings import Settings
from app.database.connection import close_pool, init_pool
from app.database.models import NewReceiptJob
from app.database.repositories.job_repository import JobRepository
from app.database.repositories.stats_repository import ReceiptStatsRepository
from app.logging.logger import Log
from app.processor.exceptions import ReceiptFileExistsError
from app.processor.processor import build_processor
from app.storage.paths import (
    extension_from_mime_type,
    generate_receipt_filename,
    generate_storage_path,
    get_file_extension,
    is_valid_receipt_file,
    mime_type_from_extension,
)
from app.storage.receipt_storage import ReceiptStorage
from app.worker.worker import Worker, WorkerOptions

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="receipt-worker",
        description="Background extraction of uploaded receipts",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Process pending receipt jobs")
    run_parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single batch and exit (for cron-style schedulers)",
    )

    enqueue_parser = subparsers.add_parser("enqueue", help="Store a receipt file and queue a job")
    enqueue_parser.add_argument("user_id", help="Owning user id")
    enqueue_parser.add_argument("file", type=Path, help="Receipt file (PDF or image)")
    enqueue_parser.add_argument("--ocr-text", help="Client-side OCR text for the receipt")
    enqueue_parser.add_argument("--ocr-confidence", type=float, help="OCR confidence (0-1 or 0-100)")
    enqueue_parser.add_argument("--category", help="Storage category (default: OTHER)")

    stats_parser = subparsers.add_parser("stats", help="Show receipt statistics for a user")
    stats_parser.add_argument("user_id", help="Owning user id")

    discard_parser = subparsers.add_parser("discard", help="Discard a receipt job")
    discard_parser.add_argument("user_id", help="Owning user id")
    discard_parser.add_argument("job_id", help="Receipt job id")

    return parser


def cmd_run(settings: Settings, once: bool) -> int:
    processor = build_processor(settings)
    worker = Worker(
        JobRepository(),
        processor.process,
        WorkerOptions.from_settings(settings),
        poll_interval_seconds=settings.job_poll_interval_seconds,
    )
    if once:
        summary = worker.run_once()
        print(
            json.dumps(
                {
                    "processed": summary.processed,
                    "succeeded": summary.succeeded,
                    "failed": summary.failed,
                }
            )
        )
        return 0
    worker.run_forever()
    return 0


def cmd_enqueue(
    settings: Settings,
    user_id: str,
    file: Path,
    ocr_text: str | None,
    ocr_confidence: float | None,
    category: str | None,
) -> int:
    if not file.is_file():
        Log.error(f"File not found: {file}")
        return 1

    extension = get_file_extension(file.name)
    mime_type = mime_type_from_extension(extension)
    if not is_valid_receipt_file(file.name, mime_type):
        Log.error(f"Unsupported receipt file: {file.name}")
        return 1

    data = file.read_bytes()
    if len(data) > MAX_UPLOAD_BYTES:
        Log.error(f"Receipt file too large: {len(data)} bytes (max {MAX_UPLOAD_BYTES})")
        return 1

    filename = generate_receipt_filename(
        extension or extension_from_mime_type(mime_type),
        receipt_date=datetime.now(timezone.utc).date(),
        description=file.stem,
    )
    storage_path = generate_storage_path(user_id, filename, category)
    try:
        ReceiptStorage(Path(settings.receipt_storage_root)).store(storage_path, data)
    except ReceiptFileExistsError:
        Log.error(f"A receipt is already stored at {storage_path}; rename the file and retry")
        return 1

    job = JobRepository().create(
        NewReceiptJob(
            user_id=user_id,
            original_name=file.name,
            mime_type=mime_type,
            file_size=len(data),
            storage_path=storage_path,
            ocr_text=ocr_text,
            ocr_confidence=ocr_confidence,
        )
    )
    Log.info(f"Receipt job queued: {job.id}", job_id=job.id, user_id=user_id)
    print(json.dumps({"id": job.id, "status": job.status.value, "storage_path": storage_path}))
    return 0


def cmd_stats(user_id: str) -> int:
    stats = ReceiptStatsRepository().get_stats(user_id)
    print(
        json.dumps(
            {
                "total": stats.total,
                "pending": stats.pending,
                "by_status": stats.counts_by_status,
                "completed_total_amount": stats.completed_total_amount,
                "completed_tax_amount": stats.completed_tax_amount,
                "average_confidence": stats.average_confidence,
            },
            indent=2,
        )
    )
    return 0


def cmd_discard(user_id: str, job_id: str) -> int:
    if not JobRepository().discard(job_id, user_id):
        Log.error(f"Receipt job {job_id} not found or already discarded")
        return 1
    Log.info(f"Receipt job {job_id} discarded", job_id=job_id, user_id=user_id)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point: parse args -> initialize pool -> dispatch command."""
    args = create_cli().parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    try:
        if args.command == "run":
            return cmd_run(settings, args.once)
        if args.command == "enqueue":
            return cmd_enqueue(
                settings,
                args.user_id,
                args.file,
                args.ocr_text,
                args.ocr_confidence,
                args.category,
            )
        if args.command == "stats":
            return cmd_stats(args.user_id)
        return cmd_discard(args.user_id, args.job_id)
    finally:
        close_pool()


if __name__ == "__main__":
    sys.exit(main())
