"""Caller-side policy applied to a parsed receipt before it is saved.

The parser reports what it found; these helpers fill gaps for a review
form and flag totals that do not add up. Neither changes the parse result.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .models import ParsedReceipt


@dataclass(frozen=True)
class Reconciliation:
    items_cents: int
    subtotal_plus_tax_cents: int
    total_cents: int
    mismatch: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items_cents": self.items_cents,
            "subtotal_plus_tax_cents": self.subtotal_plus_tax_cents,
            "total_cents": self.total_cents,
            "mismatch": self.mismatch,
        }


def reconcile(receipt: ParsedReceipt) -> Reconciliation:
    items_cents = sum(item.amount_cents for item in receipt.items)
    expected = (receipt.subtotal_cents or 0) + (receipt.tax_cents or 0)
    total = receipt.total_cents or 0
    return Reconciliation(
        items_cents=items_cents,
        subtotal_plus_tax_cents=expected,
        total_cents=total,
        mismatch=total != 0 and items_cents != total,
    )


@dataclass(frozen=True)
class DraftLineItem:
    name: str
    quantity: int
    unit_cents: int
    amount_cents: int
    category: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unit_cents": self.unit_cents,
            "amount_cents": self.amount_cents,
            "category": self.category,
        }


@dataclass(frozen=True)
class ReviewDraft:
    merchant: str
    date: datetime
    subtotal_cents: int
    tax_cents: int
    total_cents: int
    currency: str
    items: Tuple[DraftLineItem, ...]
    raw_text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "merchant": self.merchant,
            "date": self.date.date().isoformat(),
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "currency": self.currency,
            "items": [item.to_dict() for item in self.items],
            "raw_text": self.raw_text,
        }


def _unit_cents(amount_cents: int, quantity: int) -> int:
    # Truncates toward zero, so refunds split the same way as purchases.
    sign = -1 if amount_cents < 0 else 1
    return sign * (abs(amount_cents) // quantity)


def build_review_draft(receipt: ParsedReceipt, *, currency: str = "USD", now: Optional[datetime] = None) -> ReviewDraft:
    """Fill missing values the way the review form expects them.

    date -> now, subtotal -> sum of items, tax -> 0, total -> subtotal + tax.
    """
    items_sum = sum(item.amount_cents for item in receipt.items)
    subtotal = receipt.subtotal_cents if receipt.subtotal_cents is not None else items_sum
    tax = receipt.tax_cents if receipt.tax_cents is not None else 0
    total = receipt.total_cents if receipt.total_cents is not None else subtotal + tax

    items = []
    for item in receipt.items:
        qty = max(1, item.quantity)
        items.append(
            DraftLineItem(
                name=item.name,
                quantity=qty,
                unit_cents=_unit_cents(item.amount_cents, qty),
                amount_cents=item.amount_cents,
                category=item.category,
            )
        )

    return ReviewDraft(
        merchant=receipt.merchant,
        date=receipt.date or now or datetime.now(),
        subtotal_cents=subtotal,
        tax_cents=tax,
        total_cents=total,
        currency=currency,
        items=tuple(items),
        raw_text=receipt.raw_text,
    )
