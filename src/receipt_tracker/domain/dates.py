"""Date extraction from receipt lines.

Patterns are tried per line in order; each match is tried against the fixed
format list below, and the first combination that parses wins. Numeric
dates are not resolved by locale: day-first formats come
before month-first ones, so "03/04/2024" reads as 3 April.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from ..logging import get_logger

_LOG = get_logger("dates")

_MONTHS = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)"

DATE_PATTERNS = (
    # YYYY-MM-DD or YYYY/MM/DD
    re.compile(r"(\d{4}[-/]\d{1,2}[-/]\d{1,2})"),
    # DD-MM-YYYY or MM-DD-YYYY (also 2-digit years)
    re.compile(r"(\d{1,2}[-/]\d{1,2}[-/]\d{2,4})"),
    # DD Mon YYYY
    re.compile(rf"(\d{{1,2}}\s+{_MONTHS}[a-z]*\s+\d{{2,4}})", re.IGNORECASE),
    # Mon DD YYYY / Mon DD, YYYY
    re.compile(rf"({_MONTHS}[a-z]*\.?\s+\d{{1,2}},?\s+\d{{4}})", re.IGNORECASE),
)

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%m-%d-%Y",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%d-%m-%y",
    "%m-%d-%y",
    "%d/%m/%y",
    "%m/%d/%y",
    "%d %b %y",
    "%d %B %y",
    "%b %d %Y",
    "%B %d %Y",
)


def _clean(candidate: str) -> str:
    text = re.sub(r"(?<=[A-Za-z])[.,]|,", "", candidate)
    return re.sub(r"\s+", " ", text).strip()


def parse_date_candidate(candidate: str) -> Optional[datetime]:
    """Return the first format interpretation of candidate that parses."""
    text = _clean(candidate)
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


@dataclass(frozen=True)
class DateMatch:
    value: datetime
    start: int    # span of the matched text within the line
    end: int


def find_date_in_line(line: str) -> Optional[DateMatch]:
    for pattern in DATE_PATTERNS:
        m = pattern.search(line)
        if not m:
            continue
        parsed = parse_date_candidate(m.group(1))
        if parsed is not None:
            _LOG.debug(f"Extracted date: {m.group(1)!r} -> {parsed.date().isoformat()}")
            return DateMatch(parsed, m.start(1), m.end(1))
    return None


def parse_date_in_line(line: str) -> Optional[datetime]:
    found = find_date_in_line(line)
    return found.value if found else None


def extract_date(lines: Iterable[str]) -> Optional[datetime]:
    """Scan lines in order and return the first date found, else None."""
    for line in lines:
        parsed = parse_date_in_line(line)
        if parsed is not None:
            return parsed
    _LOG.debug("No date found")
    return None
