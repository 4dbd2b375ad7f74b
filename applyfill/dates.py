"""Date parsing and formatting for form inputs."""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Iterable, Optional

DEFAULT_FORMAT = "MM/DD/YYYY"
ISO_FORMAT = "YYYY-MM-DD"
SUPPORTED_FORMATS = (
    "MM/DD/YYYY",
    "DD/MM/YYYY",
    "YYYY-MM-DD",
    "MM-DD-YYYY",
    "YYYY/MM/DD",
    "M/D/YYYY",
    "MMM DD, YYYY",
)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_ISO = re.compile(r"^(\d{4})-(\d{1,2})(?:-(\d{1,2}))?")
_SLASHED = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
_YEAR_FIRST_SLASH = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")
_MONTH_YEAR = re.compile(r"^(\d{1,2})/(\d{4})$")
_MONTH_NAME = re.compile(r"^([A-Za-z]{3,9})\.?\s+(?:(\d{1,2}),?\s+)?(\d{4})$")


def _month_from_name(name: str) -> Optional[int]:
    prefix = name[:3].lower()
    for index, month in enumerate(MONTH_NAMES, start=1):
        if month[:3].lower() == prefix:
            return index
    return None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: object, fmt: Optional[str] = None) -> Optional[date]:
    """Parse a profile or form date.

    ISO strings are tried first, then US ``M/D/YYYY``, ``YYYY/MM/DD``,
    ``MM/YYYY`` and month names. When ``fmt`` is ``DD/MM/YYYY`` the day/month
    order of slashed values is swapped.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None

    match = _ISO.match(text)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3) or 1))

    match = _SLASHED.match(text)
    if match:
        first, second, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
        if fmt == "DD/MM/YYYY":
            return _safe_date(year, second, first)
        return _safe_date(year, first, second)

    match = _YEAR_FIRST_SLASH.match(text)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = _MONTH_YEAR.match(text)
    if match:
        return _safe_date(int(match.group(2)), int(match.group(1)), 1)

    match = _MONTH_NAME.match(text)
    if match:
        month = _month_from_name(match.group(1))
        if month:
            return _safe_date(int(match.group(3)), month, int(match.group(2) or 1))
    return None


def to_iso(value: object) -> str:
    """Normalize a date to ``YYYY-MM-DD``; unparseable input is returned as-is."""

    parsed = parse_date(value)
    if parsed is None:
        return "" if value is None else str(value)
    return parsed.isoformat()


def format_date(value: object, fmt: str = DEFAULT_FORMAT) -> str:
    """Render ``value`` in one of :data:`SUPPORTED_FORMATS`."""

    parsed = parse_date(value)
    if parsed is None:
        return "" if value is None else str(value)
    month, day, year = parsed.month, parsed.day, parsed.year
    if fmt == "DD/MM/YYYY":
        return f"{day:02d}/{month:02d}/{year}"
    if fmt == "YYYY-MM-DD":
        return f"{year}-{month:02d}-{day:02d}"
    if fmt == "MM-DD-YYYY":
        return f"{month:02d}-{day:02d}-{year}"
    if fmt == "YYYY/MM/DD":
        return f"{year}/{month:02d}/{day:02d}"
    if fmt == "M/D/YYYY":
        return f"{month}/{day}/{year}"
    if fmt == "MMM DD, YYYY":
        return f"{MONTH_NAMES[month - 1][:3]} {day:02d}, {year}"
    if fmt == "YYYY-MM":
        return f"{year}-{month:02d}"
    return f"{month:02d}/{day:02d}/{year}"


def detect_date_format(hints: Iterable[Optional[str]]) -> str:
    """Infer the expected format from placeholder, aria-label and data-* hints."""

    text = " ".join(hint for hint in hints if hint).lower()
    if not text:
        return DEFAULT_FORMAT
    if "yyyy-mm-dd" in text or "iso" in text:
        return "YYYY-MM-DD"
    if "yyyy/mm/dd" in text:
        return "YYYY/MM/DD"
    if "mm-dd-yyyy" in text:
        return "MM-DD-YYYY"
    if "dd/mm" in text:
        return "DD/MM/YYYY"
    if "mm/dd" in text:
        return "MM/DD/YYYY"
    if re.search(r"\bm/d/yyyy\b", text):
        return "M/D/YYYY"
    if "mmm" in text or re.search(r"\b(jan|feb)\b", text):
        return "MMM DD, YYYY"
    return DEFAULT_FORMAT


def month_option_matches(option: str, month: int) -> bool:
    """True when a month select option represents ``month`` (1-12)."""

    text = option.strip().lower()
    if text in {str(month), f"{month:02d}"}:
        return True
    name = MONTH_NAMES[month - 1].lower()
    return text == name or text == name[:3] or text.startswith(name[:3])
