from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from presence_engine.schemas import ComplianceStats
from presence_engine.services.calendar_utils import days_in_month, saturdays_of

MIN_DAYS_WITH_TWO_SATURDAYS = 8
MIN_SATURDAYS_WITH_EIGHT_DAYS = 2
MIN_DAYS_ANY_WEEKDAY = 10


def present_saturday_days(year: int, month: int, entries: Mapping[str, Any] | Iterable[str]) -> list[str]:
    marked = set(entries)
    return [day for day in saturdays_of(year, month) if day in marked]


def compute_stats(year: int, month: int, entries: Mapping[str, Any] | Iterable[str]) -> ComplianceStats:
    """Evaluate the three monthly attendance rules for the marked days.

    ``entries`` is keyed by two-digit day strings; only the keys matter.
    Satisfying any one rule makes the month compliant. A month without
    Saturdays passes the all-Saturdays rule vacuously.
    """
    marked = set(entries)
    total_days = days_in_month(year, month)
    saturdays = saturdays_of(year, month)
    present_days = len(marked)
    present_saturdays = sum(1 for day in saturdays if day in marked)

    meets_all_saturdays = present_saturdays == len(saturdays)
    meets_8_days_2_sats = (
        present_days >= MIN_DAYS_WITH_TWO_SATURDAYS
        and present_saturdays >= MIN_SATURDAYS_WITH_EIGHT_DAYS
    )
    # Historical name: any ten marked days count, weekends included.
    meets_10_weekdays = present_days >= MIN_DAYS_ANY_WEEKDAY

    return ComplianceStats(
        total_days=total_days,
        present_days=present_days,
        total_saturdays=len(saturdays),
        present_saturdays=present_saturdays,
        meets_all_saturdays=meets_all_saturdays,
        meets_8_days_2_sats=meets_8_days_2_sats,
        meets_10_weekdays=meets_10_weekdays,
        is_compliant=meets_all_saturdays or meets_8_days_2_sats or meets_10_weekdays,
    )
