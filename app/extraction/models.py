from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ReceiptItem:
    """A single purchased line item."""

    description: str
    quantity: float | None = None
    unit_price: float | None = None
    total: float | None = None


@dataclass(frozen=True)
class ReceiptExtraction:
    """Candidate fields parsed from receipt text. Every field is independently nullable."""

    vendor: str | None = None
    total_amount: float | None = None
    tax_amount: float | None = None
    subtotal: float | None = None
    date: str | None = None  # ISO YYYY-MM-DD
    description: str | None = None
    items: list[ReceiptItem] = field(default_factory=list)
    category_code: str | None = None
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ReceiptExtraction":
        """Rebuild an extraction from its ``dataclasses.asdict`` form."""
        return cls(
            vendor=raw.get("vendor"),
            total_amount=raw.get("total_amount"),
            tax_amount=raw.get("tax_amount"),
            subtotal=raw.get("subtotal"),
            date=raw.get("date"),
            description=raw.get("description"),
            items=[
                ReceiptItem(
                    description=item.get("description", ""),
                    quantity=item.get("quantity"),
                    unit_price=item.get("unit_price"),
                    total=item.get("total"),
                )
                for item in raw.get("items") or []
            ],
            category_code=raw.get("category_code"),
            confidence=float(raw.get("confidence") or 0.0),
        )
