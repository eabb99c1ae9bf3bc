"""Receipt file naming: "YYYY-MM-DD Vendor - Receipt - Description.ext".

Storage layout is receipts/{user_id}/{category}/{filename}. Both are pure
functions of their inputs (apart from the date default) so identical uploads
map to identical paths.
"""

import re
from datetime import date, datetime, timezone

DEFAULT_CATEGORY = "OTHER"
UNKNOWN_VENDOR = "Unknown"

_ILLEGAL_CHARS_RE = re.compile(r'[/\\:*?"<>|]')
_VENDOR_ILLEGAL_CHARS_RE = re.compile(r'[/\\:*?"<>|\']')
_WHITESPACE_RE = re.compile(r"\s+")

_MIME_TO_EXTENSION = {
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/heic": "heic",
}
_VALID_EXTENSIONS = frozenset({"pdf", "jpg", "jpeg", "png", "gif", "webp", "heic"})


def sanitize_filename(value: str | None) -> str:
    """Strip characters illegal in filenames and collapse whitespace."""
    if not value:
        return ""
    return _collapse(_ILLEGAL_CHARS_RE.sub("", value))


def sanitize_vendor(value: str | None) -> str:
    """Like sanitize_filename, but apostrophes are dropped too."""
    if not value:
        return ""
    return _collapse(_VENDOR_ILLEGAL_CHARS_RE.sub("", value))


def generate_receipt_filename(
    extension: str,
    receipt_date: date | None = None,
    vendor: str | None = None,
    description: str | None = None,
) -> str:
    """Build the display filename for a receipt.

    Missing vendor becomes "Unknown", a missing description drops its segment
    and a missing date falls back to today (UTC).
    """
    day = receipt_date or datetime.now(timezone.utc).date()
    vendor_part = sanitize_vendor(vendor) or UNKNOWN_VENDOR

    filename = f"{day.strftime('%Y-%m-%d')} {vendor_part} - Receipt"
    description_part = sanitize_filename(description)
    if description_part:
        filename += f" - {description_part}"
    return f"{filename}.{extension.lstrip('.')}"


def generate_storage_path(user_id: str, filename: str, category: str | None = None) -> str:
    """Build receipts/{user_id}/{category}/{filename}; category defaults to OTHER."""
    return f"receipts/{user_id}/{category or DEFAULT_CATEGORY}/{filename}"


def extract_filename(path: str) -> str:
    return path.split("/")[-1]


def get_file_extension(filename: str) -> str:
    """Lowercased extension without the dot, or "" when there is none."""
    parts = filename.split(".")
    return parts[-1].lower() if len(parts) > 1 else ""


def extension_from_mime_type(mime_type: str) -> str:
    return _MIME_TO_EXTENSION.get(mime_type, "")


def is_valid_receipt_file(filename: str, mime_type: str | None = None) -> bool:
    """Accept known receipt extensions, falling back to the MIME type."""
    if get_file_extension(filename) in _VALID_EXTENSIONS:
        return True
    if mime_type:
        return mime_type in _MIME_TO_EXTENSION
    return False


def mime_type_from_extension(extension: str) -> str:
    """Reverse of extension_from_mime_type; "" for unknown extensions."""
    ext = extension.lstrip(".").lower()
    if ext == "jpeg":
        ext = "jpg"
    for mime_type, known in _MIME_TO_EXTENSION.items():
        if known == ext:
            return mime_type
    return ""


def _collapse(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value).strip()
