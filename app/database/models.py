from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Lifecycle states of a receipt job."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    DISCARDED = "DISCARDED"


@dataclass(frozen=True)
class ExtractedFields:
    """Structured financial data extracted from a receipt."""

    vendor: str | None = None
    total_amount: float | None = None
    tax_amount: float | None = None
    date: str | None = None
    description: str | None = None
    category_code: str | None = None

    def is_empty(self) -> bool:
        return (
            self.vendor is None
            and self.total_amount is None
            and self.tax_amount is None
            and self.date is None
        )

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ExtractedFields":
        return cls(
            vendor=raw.get("vendor"),
            total_amount=raw.get("total_amount"),
            tax_amount=raw.get("tax_amount"),
            date=raw.get("date"),
            description=raw.get("description"),
            category_code=raw.get("category_code"),
        )


@dataclass(frozen=True)
class ExtractionResult:
    """Successful outcome of a process_fn call, persisted on completion."""

    fields: ExtractedFields
    confidence: float | None = None


@dataclass
class ReceiptJobRecord:
    """Represents a row from the receipt_jobs table."""

    id: str
    user_id: str
    status: JobStatus
    attempts: int
    original_name: str = ""
    mime_type: str = ""
    file_size: int = 0
    storage_path: str = ""
    ocr_text: str | None = None
    ocr_confidence: float | None = None
    extracted_fields: ExtractedFields | None = None
    extraction_confidence: float | None = None
    last_error: str | None = None
    claimed_at: datetime | None = None
    processed_at: datetime | None = None
    discarded_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class NewReceiptJob:
    """Upload metadata used to create a PENDING job."""

    user_id: str
    original_name: str
    mime_type: str
    file_size: int
    storage_path: str
    ocr_text: str | None = None
    ocr_confidence: float | None = None


@dataclass
class ReceiptStats:
    """Dashboard aggregates over non-discarded jobs of one user."""

    counts_by_status: dict[str, int] = field(default_factory=dict)
    completed_total_amount: float = 0.0
    completed_tax_amount: float = 0.0
    average_confidence: float | None = None

    @property
    def total(self) -> int:
        return sum(self.counts_by_status.values())

    @property
    def pending(self) -> int:
        return self.counts_by_status.get(JobStatus.PENDING.value, 0) + self.counts_by_status.get(
            JobStatus.PROCESSING.value, 0
        )
