"""
Calendar -- month-key arithmetic and day-of-month extraction.

Responsibility:
    Pure functions over ``YYYY-MM`` month keys and ``YYYY-MM-DD`` local date
    strings.  Billing months are a fixed 30 days regardless of the calendar;
    a day 31 is carried through unclamped and simply opens no billable run.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Failure modes:
    - InvalidMonthKeyError for anything that is not a valid ``YYYY-MM``.
    - InvalidEventDateError when a local date string is not a real date.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from billing_kernel.domain.money import BILLING_MONTH_DAYS
from billing_kernel.exceptions import InvalidEventDateError, InvalidMonthKeyError

__all__ = [
    "BILLING_MONTH_DAYS",
    "parse_month_key",
    "format_month_key",
    "previous_month_key",
    "next_month_key",
    "month_key_for_date_string",
    "day_of_month",
    "year_of",
    "current_month_key",
    "is_current_or_future",
]

_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")


def parse_month_key(month_key: str) -> tuple[int, int]:
    """
    Split a month key into ``(year, month)``.

    Raises:
        InvalidMonthKeyError: If the key is malformed or the month is
            outside 1..12.
    """
    match = _MONTH_KEY_RE.match(month_key or "")
    if match is None:
        raise InvalidMonthKeyError(month_key)
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidMonthKeyError(month_key)
    return year, month


def format_month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def previous_month_key(month_key: str) -> str:
    """``"2025-01" -> "2024-12"``."""
    year, month = parse_month_key(month_key)
    if month == 1:
        return format_month_key(year - 1, 12)
    return format_month_key(year, month - 1)


def next_month_key(month_key: str) -> str:
    """``"2024-12" -> "2025-01"``."""
    year, month = parse_month_key(month_key)
    if month == 12:
        return format_month_key(year + 1, 1)
    return format_month_key(year, month + 1)


def _local_date(effective_date_local: str) -> date:
    """Calendar date of the first ten characters; impossible dates are rejected."""
    try:
        return date.fromisoformat((effective_date_local or "")[:10])
    except (TypeError, ValueError):
        raise InvalidEventDateError(effective_date_local) from None


def month_key_for_date_string(effective_date_local: str) -> str:
    """Month key of a ``YYYY-MM-DD`` local date string."""
    local = _local_date(effective_date_local)
    return format_month_key(local.year, local.month)


def day_of_month(effective_date_local: str) -> int:
    """
    Day of month of a local date string.

    Only the date part is read, so ``"2025-03-09"`` and
    ``"2025-03-09T23:30:00"`` both yield 9.

    Raises:
        InvalidEventDateError: If the date part is malformed or not a real
            calendar date (``"2025-02-30"``).
    """
    return _local_date(effective_date_local).day


def year_of(month_key: str) -> int:
    return parse_month_key(month_key)[0]


def current_month_key(now: datetime) -> str:
    return format_month_key(now.year, now.month)


def is_current_or_future(month_key: str, now: datetime) -> bool:
    """True when ``month_key`` is the month of ``now`` or later."""
    return parse_month_key(month_key) >= parse_month_key(current_month_key(now))
