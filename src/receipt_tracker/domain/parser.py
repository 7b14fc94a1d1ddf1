from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence

from ..logging import get_logger
from .categorizer import Categorizer, RuleSnapshot
from .dates import extract_date, find_date_in_line
from .models import UNKNOWN_MERCHANT, ParsedLineItem, ParsedReceipt
from .money import find_trailing_price

if TYPE_CHECKING:
    from ..diagnostics import ParseObserver

LOG = get_logger("parser")

MERCHANT_MAX_LEN = 50
MIN_ITEM_NAME_LEN = 2
MAX_SUMMARY_TOKENS = 3

SUBTOTAL_KEYWORD = "subtotal"
TAX_KEYWORDS = ("tax", "vat", "service")
TOTAL_KEYWORD = "total"

# Totals vocabulary first, then the other aggregate/payment markers.
SUMMARY_KEYWORDS = (
    "subtotal", "total", "tax", "vat", "gst", "service", "balance", "change",
    "payment", "amount due", "cash",
)
_SUMMARY_RE = re.compile(
    r"(?<!\w)(?:" + "|".join(re.escape(k) for k in SUMMARY_KEYWORDS) + r")(?!\w)"
)
_QTY_RE = re.compile(r"^(\d+)\s*[@x]\s+", re.IGNORECASE)
# Dot leaders or a dash glued between the name and its price.
_LEADER_RE = re.compile(r"\s*(?:\.{2,}|-)$")


@dataclass(frozen=True)
class Totals:
    subtotal_cents: Optional[int] = None
    tax_cents: Optional[int] = None
    total_cents: Optional[int] = None


def segment_lines(text: str) -> List[str]:
    """Split OCR text into trimmed, non-empty lines, order preserved."""
    return [ln.strip() for ln in (text or "").splitlines() if ln.strip()]


def extract_merchant(lines: Sequence[str]) -> str:
    # First line heuristic; no business-name lookup.
    if not lines:
        return UNKNOWN_MERCHANT
    return lines[0][:MERCHANT_MAX_LEN]


def extract_totals(lines: Sequence[str]) -> Totals:
    """Pick subtotal, tax and total from keyword lines ending in a price.

    Keywords match as plain substrings. Each line feeds at most one field and
    the first line found for a field wins.
    """
    subtotal: Optional[int] = None
    tax: Optional[int] = None
    total: Optional[int] = None

    for line in lines:
        price = find_trailing_price(line)
        if price is None:
            continue
        lower = line.lower()
        if SUBTOTAL_KEYWORD in lower and subtotal is None:
            subtotal = price.cents
        elif any(k in lower for k in TAX_KEYWORDS) and tax is None:
            tax = price.cents
        elif TOTAL_KEYWORD in lower and SUBTOTAL_KEYWORD not in lower and total is None:
            total = price.cents

    LOG.debug(f"Totals: subtotal={subtotal}, tax={tax}, total={total}")
    return Totals(subtotal, tax, total)


def is_summary_line(line: str) -> bool:
    """True for short aggregate/payment lines such as "Tax 1.74" or "Cash 10.00".

    Keywords match on word boundaries only, and lines longer than three
    tokens are never summaries, so "Cashew Nuts 3.50" stays an item.
    """
    lower = line.lower().strip()
    if len(lower.split()) > MAX_SUMMARY_TOKENS:
        return False
    return _SUMMARY_RE.search(lower) is not None


def split_quantity(name: str) -> tuple[int, str]:
    m = _QTY_RE.match(name)
    if not m:
        return 1, name
    try:
        qty = max(1, int(m.group(1)))
    except ValueError:
        qty = 1
    return qty, name[m.end():].strip()


class ReceiptParser:
    """Turn raw OCR text into a ParsedReceipt.

    Parsing never raises on content: missing pieces come back as None (or
    the "Unknown Merchant" fallback) and unreadable prices count as zero.
    """

    def __init__(self, categorizer: Optional[Categorizer] = None, observer: Optional["ParseObserver"] = None) -> None:
        self.categorizer = categorizer or Categorizer()
        self.observer = observer

    def parse(self, ocr_text: str) -> ParsedReceipt:
        started = time.perf_counter()
        text = ocr_text or ""
        LOG.debug(f"Parsing OCR text ({len(text)} chars)")
        lines = segment_lines(text)

        merchant = extract_merchant(lines)
        date = extract_date(lines)
        totals = extract_totals(lines)
        # One snapshot per receipt so every item sees the same user rules.
        user_rules = self.categorizer.user_rules_snapshot()
        items = self.extract_line_items(lines, user_rules)

        receipt = ParsedReceipt(
            merchant=merchant,
            date=date,
            subtotal_cents=totals.subtotal_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            items=tuple(items),
            raw_text=text,
        )
        LOG.debug(f"Parsed: merchant={merchant}, items={len(items)}, total={totals.total_cents}")

        if self.observer is not None:
            self.observer.record_parse(text, receipt, (time.perf_counter() - started) * 1000.0)
        return receipt

    def extract_line_items(self, lines: Sequence[str], user_rules: RuleSnapshot = ()) -> List[ParsedLineItem]:
        items: List[ParsedLineItem] = []
        for line in lines:
            if is_summary_line(line):
                continue

            price = find_trailing_price(line)
            if price is None or price.cents == 0:
                continue
            # "Date: 10 Mar 2024" ends in a number but carries no price.
            date = find_date_in_line(line)
            if date is not None and date.end >= price.start:
                continue

            qty, name = split_quantity(_LEADER_RE.sub("", line[:price.start].strip()))
            if len(name) < MIN_ITEM_NAME_LEN:
                continue

            items.append(
                ParsedLineItem(
                    name=name,
                    quantity=qty,
                    amount_cents=price.cents,
                    category=self.categorizer.categorize(name, user_rules=user_rules),
                    raw_text=line,
                )
            )

        LOG.debug(f"Extracted {len(items)} line items")
        return items
