"""Deterministic parser for OCR'd receipt text.

Turns free-form receipt text into candidate fields:
1. vendor      - first plausible name line near the top, if the text looks
                 like a receipt at all (skips phone, store number, zip, price).
2. total       - amount after a TOTAL label; the last one wins because
                 receipts usually print SUBTOTAL and running totals first.
3. tax         - amount after a TAX / VAT / GST label.
4. date        - MM/DD/YYYY, then "Month DD, YYYY", then ISO; normalized to ISO.
5. description - item lines (text followed by a price) in source order.

Nothing here raises: unrecognized input yields null fields.
"""

import re
from datetime import date

from app.extraction.models import ReceiptExtraction, ReceiptItem

_AMOUNT = r"\$?[^\S\n]*(\d[\d,]*(?:\.\d+)?)(?!\d|\.\d|[^\S\n]*%|[/\-]\d)"
# A label may sit alone with its amount on the following line.
_GAP = r"[^\S\n]*[:\-]?[^\S\n]*(?:\n[^\S\n]*)?"

_TOTAL_RE = re.compile(
    r"(?<![a-z])(?<!sub )(?<!sub-)(?:grand[^\S\n]+)?total\b" + _GAP + _AMOUNT,
    re.IGNORECASE,
)
_SUBTOTAL_RE = re.compile(
    r"(?<![a-z])sub[\s\-]?total\b" + _GAP + _AMOUNT,
    re.IGNORECASE,
)
_TAX_RE = re.compile(
    r"(?<![a-z])(?:sales[^\S\n]+tax|tax|vat|gst|hst)\b"
    r"(?:[^\S\n]*\(?\d+(?:\.\d+)?[^\S\n]*%\)?)?"
    + _GAP
    + _AMOUNT,
    re.IGNORECASE,
)

_NUMERIC_DATE_RE = re.compile(r"(?<!\d)(\d{1,2})[/\-](\d{1,2})[/\-](\d{4}|\d{2})(?!\d)")
_MONTH_NAME_DATE_RE = re.compile(
    r"\b(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
    r"\s+(\d{1,2}),?\s+(\d{4})\b",
    re.IGNORECASE,
)
_ISO_DATE_RE = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_RECEIPT_HINT_RE = re.compile(r"\$[^\S\n]*\d|total|\btax\b", re.IGNORECASE)
_NON_ITEM_RE = re.compile(
    r"^(sub[\s\-]?total|tax|sales tax|total|grand total|change|cash|credit|debit|balance"
    r"|amount|tip|vat|gst|hst|rounding|discount|visa|mastercard|amex)\b",
    re.IGNORECASE,
)
_QUANTITY_ITEM_RE = re.compile(
    r"^(.+?)\s+(\d+(?:\.\d+)?)\s*(?:x|@)\s*\$?([\d,]+\.\d{2})\s+\$?([\d,]+\.\d{2})$",
    re.IGNORECASE,
)
_PRICED_ITEM_RE = re.compile(r"^(.+?)\s+\$?([\d,]+\.\d{2})$")
_NOT_VENDOR_RE = re.compile(r"^\d{3,}|#|\d{5}|^\$|^(store|address|phone|tel|fax)\b", re.IGNORECASE)
_VENDOR_SCAN_LINES = 5

_MAX_DESCRIPTION_ITEMS = 3

_CONFIDENCE_WEIGHTS = {
    "vendor": 0.2,
    "date": 0.15,
    "total": 0.3,
    "tax": 0.1,
    "subtotal": 0.1,
    "items": 0.15,
}


def parse_receipt_text(text: str | None, ocr_confidence: float | None = None) -> ReceiptExtraction:
    """Parse receipt text into a ReceiptExtraction.

    Args:
        text: Raw OCR or PDF text. None and blank input give an empty result.
        ocr_confidence: Optional OCR engine confidence (0-1 or 0-100), blended
                        into the data coverage score.
    """
    if not text or not text.strip():
        return ReceiptExtraction()

    lines = [line.strip() for line in text.splitlines() if line.strip()]

    vendor = _extract_vendor(text, lines)
    total = _extract_total(text)
    tax = _extract_amount(_TAX_RE, text)
    subtotal = _extract_amount(_SUBTOTAL_RE, text)
    receipt_date = extract_date(text)
    items = _extract_items([line for line in lines if line != vendor])

    if subtotal is None and total is not None and tax is not None:
        subtotal = round(total - tax, 2)
    if total is None and subtotal is not None and tax is not None:
        total = round(subtotal + tax, 2)

    confidence = calculate_confidence(
        vendor=vendor,
        receipt_date=receipt_date,
        total=total,
        tax=tax,
        subtotal=subtotal,
        has_items=bool(items),
        ocr_confidence=ocr_confidence,
    )
    return ReceiptExtraction(
        vendor=vendor,
        total_amount=total,
        tax_amount=tax,
        subtotal=subtotal,
        date=receipt_date,
        description=summarize_items(items),
        items=items,
        confidence=confidence,
    )


def extract_date(text: str) -> str | None:
    """Return the first valid receipt date in text as YYYY-MM-DD."""
    for match in _NUMERIC_DATE_RE.finditer(text):
        month, day, year = (int(group) for group in match.groups())
        if year < 100:
            year += 2000
        parsed = _safe_date(year, month, day)
        if parsed:
            return parsed

    for match in _MONTH_NAME_DATE_RE.finditer(text):
        month = _MONTHS[match.group(1)[:3].lower()]
        parsed = _safe_date(int(match.group(3)), month, int(match.group(2)))
        if parsed:
            return parsed

    for match in _ISO_DATE_RE.finditer(text):
        year, month, day = (int(group) for group in match.groups())
        parsed = _safe_date(year, month, day)
        if parsed:
            return parsed

    return None


def summarize_items(items: list[ReceiptItem], max_items: int = _MAX_DESCRIPTION_ITEMS) -> str | None:
    """Join unique item descriptions in source order."""
    unique: list[str] = []
    for item in items:
        if item.description and item.description not in unique:
            unique.append(item.description)
    if not unique:
        return None
    return ", ".join(unique[:max_items])


def calculate_confidence(
    *,
    vendor: str | None,
    receipt_date: str | None,
    total: float | None,
    tax: float | None,
    subtotal: float | None,
    has_items: bool,
    ocr_confidence: float | None = None,
) -> float:
    """Score field coverage in [0, 1], blended 80/20 with OCR confidence when known."""
    score = 0.0
    if vendor:
        score += _CONFIDENCE_WEIGHTS["vendor"]
    if receipt_date:
        score += _CONFIDENCE_WEIGHTS["date"]
    if total is not None:
        score += _CONFIDENCE_WEIGHTS["total"]
    if tax is not None:
        score += _CONFIDENCE_WEIGHTS["tax"]
    if subtotal is not None:
        score += _CONFIDENCE_WEIGHTS["subtotal"]
    if has_items:
        score += _CONFIDENCE_WEIGHTS["items"]

    normalized_ocr = normalize_confidence(ocr_confidence)
    if normalized_ocr is not None:
        score = score * 0.8 + normalized_ocr * 0.2
    return round(_clamp(score), 4)


def normalize_confidence(value: float | None) -> float | None:
    """Map 0-1 or 0-100 confidence scales onto [0, 1]."""
    if value is None or value != value:  # NaN
        return None
    scaled = value / 100 if value > 1 else value
    return _clamp(scaled)


def _extract_vendor(text: str, lines: list[str]) -> str | None:
    if not _RECEIPT_HINT_RE.search(text):
        return None
    for line in lines[:_VENDOR_SCAN_LINES]:
        if len(line) <= 3 or _NOT_VENDOR_RE.search(line) or _is_summary_line(line):
            continue
        if _PRICED_ITEM_RE.match(line) or _QUANTITY_ITEM_RE.match(line):
            continue
        return line
    return None


def _extract_total(text: str) -> float | None:
    for match in reversed(list(_TOTAL_RE.finditer(text))):
        value = _parse_amount(match.group(1))
        if value is not None:
            return value
    return None


def _extract_amount(pattern: re.Pattern[str], text: str) -> float | None:
    for match in pattern.finditer(text):
        value = _parse_amount(match.group(1))
        if value is not None:
            return value
    return None


def _extract_items(lines: list[str]) -> list[ReceiptItem]:
    items: list[ReceiptItem] = []
    seen: set[tuple[str, float | None]] = set()

    for line in lines:
        if _is_summary_line(line):
            continue

        quantity_match = _QUANTITY_ITEM_RE.match(line)
        if quantity_match:
            item = ReceiptItem(
                description=quantity_match.group(1).strip(),
                quantity=_parse_amount(quantity_match.group(2)),
                unit_price=_parse_amount(quantity_match.group(3)),
                total=_parse_amount(quantity_match.group(4)),
            )
        else:
            price_match = _PRICED_ITEM_RE.match(line)
            if not price_match:
                continue
            item = ReceiptItem(
                description=price_match.group(1).strip(),
                total=_parse_amount(price_match.group(2)),
            )

        if len(item.description) <= 2 or _NON_ITEM_RE.match(item.description):
            continue
        key = (item.description, item.total)
        if key in seen:
            continue
        seen.add(key)
        items.append(item)

    return items


def _is_summary_line(line: str) -> bool:
    return bool(
        _NON_ITEM_RE.match(line)
        or _TOTAL_RE.search(line)
        or _SUBTOTAL_RE.search(line)
        or _TAX_RE.search(line)
        or _NUMERIC_DATE_RE.search(line)
        or _MONTH_NAME_DATE_RE.search(line)
        or _ISO_DATE_RE.search(line)
    )


def _parse_amount(raw: str) -> float | None:
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None


def _safe_date(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(value, low), high)
