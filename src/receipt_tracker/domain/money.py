import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from ..logging import get_logger

_LOG = get_logger("money")

CURRENCY_GLYPHS = "$€£¥₹"

_STRIP_RE = re.compile(r"[\s$€£¥₹]")

# Trailing price at end of line. The token may not continue a number, date,
# time or phone fragment ("15/03/2024", "14:02", "555-1234", "12.345"), but
# dot leaders are fine ("Milk.......4.99"). A minus sign counts only at the
# start of the line or after whitespace.
PRICE_TOKEN_RE = re.compile(
    r"(?<![\d/])(?<!\d[-.,:])"
    r"(?P<token>(?:(?:^|(?<=\s))-)?[$€£¥₹]?"
    r"(?:(?P<grouped>\d{1,3}(?:,\d{3})*(?:\.\d{2})?)"
    r"|(?P<decimal>\d+\.\d{2})"
    r"|(?P<comma_decimal>\d+,\d{2})"
    r"|(?P<integer>\d+)))$"
)


@dataclass(frozen=True)
class TrailingPrice:
    start: int    # index in the line where the token begins
    token: str
    cents: int


def parse_price_to_cents(value: str) -> int:
    """Normalize a price string to integer cents.

    Handles '4.99', '$4.99', '1,250.99' (comma thousands), '12,50'
    (comma decimal) and a leading '-' for refunds. Digits past the second
    decimal are truncated toward zero. Anything unparseable yields 0.
    """
    cleaned = _STRIP_RE.sub("", value or "")
    negative = cleaned.startswith("-")
    if negative:
        cleaned = cleaned[1:]

    if "," in cleaned and "." in cleaned:
        cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        cleaned = cleaned.replace(",", ".")

    try:
        cents = int(Decimal(cleaned) * 100)
    except (InvalidOperation, ValueError, OverflowError):
        _LOG.debug(f"Failed to parse price: {value!r}")
        return 0
    return -cents if negative else cents


def cents_to_str(cents: int) -> str:
    """Render cents as a plain two-decimal string: 499 -> '4.99'."""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole}.{frac:02d}"


def find_trailing_price(line: str) -> Optional[TrailingPrice]:
    """Return the price token that ends the line, or None."""
    m = PRICE_TOKEN_RE.search(line)
    if not m:
        return None
    token = m.group("token")
    # Commas in a grouped token are thousands separators ("1,250" is 1250.00).
    raw = token if m.group("comma_decimal") is not None else token.replace(",", "")
    return TrailingPrice(start=m.start("token"), token=token, cents=parse_price_to_cents(raw))
