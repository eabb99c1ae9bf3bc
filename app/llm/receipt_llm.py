"""Vision LLM receipt extraction for low-confidence OCR results."""

import base64
import json
import re
from datetime import date
from pathlib import Path
from typing import Any

from app.extraction.models import ReceiptExtraction, ReceiptItem
from app.extraction.text_extractor import calculate_confidence, normalize_confidence, summarize_items
from app.llm.client_base import BaseLlmClient
from app.llm.exceptions import LlmParsingError
from app.llm.prompt_loader import load_prompt_template
from app.logging.logger import Log

SUPPORTED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})
VALID_CATEGORY_CODES = frozenset(
    {
        "MEALS",
        "TRAVEL",
        "OFFICE",
        "UTILITIES",
        "SERVICES",
        "SOFTWARE",
        "GROCERIES",
        "HEALTHCARE",
        "OTHER",
    }
)

_USER_PROMPT = "Extract the receipt data."
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")


def is_image_type_supported(mime_type: str) -> bool:
    return mime_type in SUPPORTED_IMAGE_TYPES


class LlmReceiptExtractor:
    """Extracts receipt fields from an image using an AI provider."""

    def __init__(
        self,
        *,
        client: BaseLlmClient,
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 700,
        prompt_template_path: Path | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = max(0.0, min(0.2, temperature))
        self._max_tokens = max_tokens
        self._system_prompt = load_prompt_template(prompt_template_path)

    def extract(self, image: bytes, mime_type: str) -> ReceiptExtraction:
        """Send the receipt image to the provider and normalize its JSON answer.

        Raises:
            LlmError: on provider failure or an unusable response.
        """
        raw_response = self._client.create_chat_completion(
            model=self._model,
            temperature=self._temperature,
            system_prompt=self._system_prompt,
            user_prompt=_USER_PROMPT,
            image_base64=base64.b64encode(image).decode("ascii"),
            mime_type=mime_type,
            max_tokens=self._max_tokens,
        )
        Log.debug(f"AI raw response:\n{raw_response}")

        extraction = normalize_llm_payload(parse_json_payload(raw_response))
        Log.info(
            f"LLM extraction complete: {len(extraction.items)} items, "
            f"confidence {extraction.confidence}"
        )
        return extraction


def parse_json_payload(raw: str) -> dict[str, Any]:
    """Parse the outermost JSON object in raw, tolerating code fences and chatter."""
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end <= start:
        raise LlmParsingError("No JSON object found in LLM response")

    try:
        parsed = json.loads(raw[start : end + 1])
    except json.JSONDecodeError as exc:
        raise LlmParsingError(f"Invalid JSON response: {exc}") from exc

    if not isinstance(parsed, dict):
        raise LlmParsingError("JSON response must be an object")
    return parsed


def normalize_llm_payload(data: dict[str, Any]) -> ReceiptExtraction:
    """Coerce loosely-typed provider JSON into a ReceiptExtraction."""
    raw_items = data.get("items")
    items = [
        item
        for item in (_to_item(raw) for raw in (raw_items if isinstance(raw_items, list) else []))
        if item is not None
    ]

    vendor = _to_str(data.get("merchant")) or _to_str(data.get("vendor"))
    receipt_date = _to_iso_date(data.get("date"))
    subtotal = _to_number(data.get("subtotal"))
    tax = _to_number(data.get("tax"))
    total = _to_number(data.get("total"))

    category_code = (_to_str(data.get("categoryCode")) or "OTHER").upper()
    if category_code not in VALID_CATEGORY_CODES:
        category_code = "OTHER"

    confidence = normalize_confidence(_to_number(data.get("confidence")))
    if confidence is None:
        confidence = calculate_confidence(
            vendor=vendor,
            receipt_date=receipt_date,
            total=total,
            tax=tax,
            subtotal=subtotal,
            has_items=bool(items),
        )

    return ReceiptExtraction(
        vendor=vendor,
        total_amount=total,
        tax_amount=tax,
        subtotal=subtotal,
        date=receipt_date,
        description=summarize_items(items),
        items=items,
        category_code=category_code,
        confidence=confidence,
    )


def _to_item(raw: Any) -> ReceiptItem | None:
    if isinstance(raw, str):
        description = raw.strip()
        return ReceiptItem(description=description) if description else None
    if not isinstance(raw, dict):
        return None
    description = _to_str(raw.get("description")) or _to_str(raw.get("name"))
    if not description:
        return None
    return ReceiptItem(
        description=description,
        quantity=_to_number(_first_present(raw, "quantity", "qty")),
        unit_price=_to_number(_first_present(raw, "unitPrice", "unit_price", "price")),
        total=_to_number(_first_present(raw, "total", "lineTotal", "line_total")),
    )


def _first_present(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _to_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if value != value else float(value)
    if isinstance(value, str):
        try:
            return float(_NON_NUMERIC_RE.sub("", value))
        except ValueError:
            return None
    return None


def _to_iso_date(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10]).isoformat()
    except ValueError:
        return None
