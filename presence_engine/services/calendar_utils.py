"""Calendar arithmetic for monthly presence documents.

Months are 0-based (0 = January) everywhere inside the engine. The HTTP layer
works with 1-based months and converts through ``month_index_from_number``.
Weekdays are always computed from UTC-anchored datetimes so the result never
depends on the host's local timezone.
"""

from __future__ import annotations

import re
from calendar import monthrange
from dataclasses import dataclass
from datetime import datetime, timezone

from presence_engine.errors import ValidationError

SATURDAY = 5
MIN_YEAR = 1000
MAX_YEAR = 9999

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DAY_RE = re.compile(r"^\d{1,2}$")


@dataclass(frozen=True)
class PresenceDate:
    year: int
    month: int
    day: str

    @property
    def iso(self) -> str:
        return format_presence_date(self.year, self.month, self.day)


def validate_year_month(year: int, month: int) -> None:
    if not isinstance(year, int) or isinstance(year, bool) or not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError("Year must be a four-digit number")
    if not isinstance(month, int) or isinstance(month, bool) or not 0 <= month <= 11:
        raise ValidationError("Month index must be between 0 and 11")


def month_index_from_number(month_number: int) -> int:
    """Convert a 1-based calendar month (1..12) to the internal 0-based index."""
    if not isinstance(month_number, int) or isinstance(month_number, bool) or not 1 <= month_number <= 12:
        raise ValidationError("Month must be between 1 and 12")
    return month_number - 1


def month_number_from_index(month: int) -> int:
    if not isinstance(month, int) or isinstance(month, bool) or not 0 <= month <= 11:
        raise ValidationError("Month index must be between 0 and 11")
    return month + 1


def days_in_month(year: int, month: int) -> int:
    validate_year_month(year, month)
    return monthrange(year, month + 1)[1]


def _utc_day(year: int, month: int, day: int) -> datetime:
    return datetime(year, month + 1, day, tzinfo=timezone.utc)


def saturdays_of(year: int, month: int) -> list[str]:
    return [
        f"{day:02d}"
        for day in range(1, days_in_month(year, month) + 1)
        if _utc_day(year, month, day).weekday() == SATURDAY
    ]


def normalize_day(year: int, month: int, day: str | int) -> str:
    """Return ``day`` as a two-digit string, rejecting days outside the month."""
    if isinstance(day, bool):
        raise ValidationError("Day must be a number")
    if isinstance(day, str):
        raw = day.strip()
        if not _DAY_RE.match(raw):
            raise ValidationError("Day must be a one or two digit number")
        day_number = int(raw)
    elif isinstance(day, int):
        day_number = day
    else:
        raise ValidationError("Day must be a number")

    if not 1 <= day_number <= days_in_month(year, month):
        raise ValidationError(f"Day {day_number} does not exist in {year}-{month + 1:02d}")
    return f"{day_number:02d}"


def parse_presence_date(value: str) -> PresenceDate:
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value):
        raise ValidationError("Date must be in YYYY-MM-DD format")
    year_str, month_str, day_str = value.split("-")
    year = int(year_str)
    month = month_index_from_number(int(month_str))
    validate_year_month(year, month)
    return PresenceDate(year=year, month=month, day=normalize_day(year, month, day_str))


def format_presence_date(year: int, month: int, day: str) -> str:
    return f"{year:04d}-{month + 1:02d}-{day}"


def monthly_document_key(user_id: str, year: int, month: int) -> str:
    return f"{user_id}_{year}_{month + 1:02d}"


def monthly_document_prefix(user_id: str) -> str:
    return f"{user_id}_"
