from dataclasses import replace
from pathlib import Path

from app.cache.base import BaseExtractionCache, compute_file_hash
from app.cache.factory import ExtractionCacheFactory
from app.config.settings import Settings
from app.database.exceptions import StorageError
from app.database.models import ExtractedFields, ExtractionResult, ReceiptJobRecord
from app.extraction.models import ReceiptExtraction
from app.extraction.text_extractor import parse_receipt_text
from app.llm.exceptions import LlmError
from app.llm.factory import LlmExtractorFactory
from app.llm.receipt_llm import LlmReceiptExtractor, is_image_type_supported
from app.logging.logger import Log
from app.pdf.base import BasePdfExtractor
from app.pdf.exceptions import PdfExtractionError
from app.pdf.factory import PdfExtractorFactory
from app.processor.exceptions import (
    EmptyExtractionError,
    ReceiptRateLimitedError,
    UnsupportedReceiptTypeError,
)
from app.rate_limit.base import BaseRateLimiter
from app.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from app.rate_limit.models import RateLimitPolicy
from app.storage.receipt_storage import ReceiptStorage

PDF_MIME_TYPE = "application/pdf"
DEFAULT_LLM_FALLBACK_CONFIDENCE = 0.7


class ReceiptProcessor:
    """Turns one claimed receipt job into extracted fields.

    Pipeline: text (stored OCR or PDF) -> text extractor -> optional LLM
    fallback for low-confidence images -> merge -> empty check.

    LLM results are cached by the SHA-256 of the image bytes; a cache hit
    neither calls the LLM nor counts against the rate limit.
    """

    def __init__(
        self,
        storage: ReceiptStorage,
        pdf_extractor: BasePdfExtractor,
        rate_limiter: BaseRateLimiter,
        rate_limit_policy: RateLimitPolicy,
        llm_extractor: LlmReceiptExtractor | None = None,
        llm_fallback_confidence: float = DEFAULT_LLM_FALLBACK_CONFIDENCE,
        extraction_cache: BaseExtractionCache | None = None,
    ) -> None:
        self._storage = storage
        self._pdf_extractor = pdf_extractor
        self._rate_limiter = rate_limiter
        self._rate_limit_policy = rate_limit_policy
        self._llm_extractor = llm_extractor
        self._llm_fallback_confidence = llm_fallback_confidence
        self._extraction_cache = extraction_cache

    def process(self, job: ReceiptJobRecord) -> ExtractionResult:
        """Extract receipt fields for a job.

        Raises:
            ProcessorError: when the receipt cannot be read or nothing was extracted.
        """
        Log.info(f"Processing receipt job {job.id}", job_id=job.id, user_id=job.user_id)

        text = self._resolve_text(job)
        extraction = parse_receipt_text(text, job.ocr_confidence)
        Log.info(
            f"Text extraction for job {job.id}: confidence {extraction.confidence}",
            job_id=job.id,
        )

        if self._llm_extractor is not None and self._should_use_llm(job, extraction):
            extraction = self._apply_llm_fallback(job, extraction, self._llm_extractor)

        fields = ExtractedFields(
            vendor=extraction.vendor,
            total_amount=extraction.total_amount,
            tax_amount=extraction.tax_amount,
            date=extraction.date,
            description=extraction.description,
            category_code=extraction.category_code,
        )
        if fields.is_empty():
            raise EmptyExtractionError(f"No receipt fields found for job {job.id}")
        return ExtractionResult(fields=fields, confidence=extraction.confidence)

    def _resolve_text(self, job: ReceiptJobRecord) -> str:
        if job.ocr_text:
            return job.ocr_text
        if job.mime_type == PDF_MIME_TYPE:
            raw_bytes = self._storage.load(job.storage_path)
            try:
                text = self._pdf_extractor.extract(raw_bytes)
            except PdfExtractionError as exc:
                raise UnsupportedReceiptTypeError(str(exc)) from exc
            Log.info(f"Extracted {len(text)} chars from PDF for job {job.id}", job_id=job.id)
            return text
        if is_image_type_supported(job.mime_type) and self._llm_extractor is not None:
            return ""
        raise UnsupportedReceiptTypeError(
            f"No OCR text and no reader for {job.mime_type or 'unknown type'} (job {job.id})"
        )

    def _should_use_llm(self, job: ReceiptJobRecord, extraction: ReceiptExtraction) -> bool:
        return (
            extraction.confidence < self._llm_fallback_confidence
            and is_image_type_supported(job.mime_type)
        )

    def _apply_llm_fallback(
        self,
        job: ReceiptJobRecord,
        ocr_result: ReceiptExtraction,
        llm_extractor: LlmReceiptExtractor,
    ) -> ReceiptExtraction:
        image = self._storage.load(job.storage_path)
        file_hash = compute_file_hash(image)
        cached = self._cached_extraction(job, file_hash)
        if cached is not None:
            Log.info(f"Using cached LLM extraction for job {job.id}", job_id=job.id)
            return merge_extractions(ocr_result, cached)

        decision = self._rate_limiter.check(f"llm:{job.user_id}", self._rate_limit_policy)
        if not decision.allowed:
            retry_after = round(decision.retry_after_seconds, 1)
            if _has_no_core_fields(ocr_result):
                raise ReceiptRateLimitedError(
                    f"LLM rate limit reached for user {job.user_id} and OCR found nothing "
                    f"(job {job.id}, retry after {retry_after}s)"
                )
            Log.warning(
                f"LLM rate limit reached for user {job.user_id}, keeping OCR result",
                job_id=job.id,
                retry_after_seconds=retry_after,
            )
            return ocr_result

        try:
            llm_result = llm_extractor.extract(image, job.mime_type)
        except LlmError as exc:
            Log.warning(f"LLM extraction failed for job {job.id}, keeping OCR result: {exc}")
            return ocr_result

        Log.info(
            f"LLM extraction for job {job.id}: confidence {llm_result.confidence}",
            job_id=job.id,
        )
        self._cache_extraction(job, file_hash, llm_result)
        return merge_extractions(ocr_result, llm_result)

    def _cached_extraction(self, job: ReceiptJobRecord, file_hash: str) -> ReceiptExtraction | None:
        if self._extraction_cache is None:
            return None
        try:
            return self._extraction_cache.get(file_hash)
        except StorageError as exc:
            Log.warning(f"Extraction cache unavailable for job {job.id}: {exc}", job_id=job.id)
            return None

    def _cache_extraction(
        self, job: ReceiptJobRecord, file_hash: str, extraction: ReceiptExtraction
    ) -> None:
        if self._extraction_cache is None:
            return
        try:
            self._extraction_cache.set(file_hash, extraction)
        except StorageError as exc:
            Log.warning(f"Could not cache LLM extraction for job {job.id}: {exc}", job_id=job.id)


def _has_no_core_fields(extraction: ReceiptExtraction) -> bool:
    return (
        extraction.vendor is None
        and extraction.total_amount is None
        and extraction.tax_amount is None
        and extraction.date is None
    )


def merge_extractions(ocr: ReceiptExtraction, llm: ReceiptExtraction) -> ReceiptExtraction:
    """LLM values win; OCR values fill the gaps; confidence is the higher of the two."""
    return replace(
        llm,
        vendor=llm.vendor or ocr.vendor,
        total_amount=_first_not_none(llm.total_amount, ocr.total_amount),
        tax_amount=_first_not_none(llm.tax_amount, ocr.tax_amount),
        subtotal=_first_not_none(llm.subtotal, ocr.subtotal),
        date=llm.date or ocr.date,
        description=llm.description or ocr.description,
        items=llm.items or ocr.items,
        category_code=llm.category_code or ocr.category_code,
        confidence=max(ocr.confidence, llm.confidence),
    )


def _first_not_none(primary: float | None, fallback: float | None) -> float | None:
    return primary if primary is not None else fallback


def build_processor(
    settings: Settings,
    storage_root: Path | None = None,
) -> ReceiptProcessor:
    """Build a ReceiptProcessor with all required adapters."""
    storage = ReceiptStorage(storage_root or Path(settings.receipt_storage_root))
    return ReceiptProcessor(
        storage=storage,
        pdf_extractor=PdfExtractorFactory.create(settings),
        rate_limiter=InMemoryRateLimiter(),
        rate_limit_policy=RateLimitPolicy(
            requests=settings.llm_rate_limit_requests,
            window_seconds=settings.llm_rate_limit_window_seconds,
        ),
        llm_extractor=LlmExtractorFactory.create(settings),
        llm_fallback_confidence=settings.llm_fallback_confidence,
        extraction_cache=ExtractionCacheFactory.create(settings),
    )
