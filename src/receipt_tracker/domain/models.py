from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

UNKNOWN_MERCHANT = "Unknown Merchant"
DEFAULT_CATEGORY = "Other"


@dataclass(frozen=True)
class KeywordRule:
    keyword: str   # lowercase substring
    category: str


@dataclass(frozen=True)
class ParsedLineItem:
    name: str
    quantity: int
    amount_cents: int  # negative for refunds
    category: str
    raw_text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "amount_cents": self.amount_cents,
            "category": self.category,
            "raw_text": self.raw_text,
        }


@dataclass(frozen=True)
class ParsedReceipt:
    merchant: str
    date: Optional[datetime]
    subtotal_cents: Optional[int]
    tax_cents: Optional[int]
    total_cents: Optional[int]
    items: Tuple[ParsedLineItem, ...] = field(default_factory=tuple)
    raw_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-ready mapping; absent fields stay None."""
        return {
            "merchant": self.merchant,
            "date": self.date.date().isoformat() if self.date else None,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "items": [item.to_dict() for item in self.items],
            "raw_text": self.raw_text,
        }
