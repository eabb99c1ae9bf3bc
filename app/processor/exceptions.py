from typing import ClassVar


class ProcessorError(Exception):
    """Base exception for all receipt processing errors.

    ``public_message`` is what the uploading user sees on a FAILED job; the
    exception text itself only goes to the log.
    """

    code: ClassVar[str] = "PROCESSING_ERROR"
    public_message: ClassVar[str] = "The receipt could not be processed."


class ReceiptFileNotFoundError(ProcessorError):
    """Raised when the receipt file is missing from storage."""

    code = "FILE_NOT_FOUND"
    public_message = "The uploaded receipt file could not be found."


class InvalidStoragePathError(ProcessorError):
    """Raised when a storage path resolves outside the storage root."""

    code = "INVALID_STORAGE_PATH"
    public_message = "The uploaded receipt file could not be found."


class UnsupportedReceiptTypeError(ProcessorError):
    """Raised when no text can be obtained for the receipt's file type."""

    code = "UNSUPPORTED_TYPE"
    public_message = "This receipt file type cannot be read automatically."


class EmptyExtractionError(ProcessorError):
    """Raised when extraction found none of vendor, total, tax or date."""

    code = "EMPTY_EXTRACTION"
    public_message = "No receipt details could be read from this file."


class ReceiptFileExistsError(ProcessorError):
    """Raised when storing a receipt would replace an existing file."""

    code = "FILE_EXISTS"
    public_message = "A receipt file with the same name was already uploaded."


class ReceiptRateLimitedError(ProcessorError):
    """Raised when an image-only receipt needs the LLM but the user is over the call limit."""

    code = "RATE_LIMITED"
    public_message = "Too many receipts are being read right now. Please upload this one again in a few minutes."
