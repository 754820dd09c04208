from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from functools import partial

from presence_engine.errors import NotFoundError
from presence_engine.schemas import (
    OverviewTotals,
    OverviewUserItem,
    PresenceOverview,
    RosterMember,
    UserMonthlyPresenceResponse,
)
from presence_engine.services.calendar_utils import month_number_from_index, validate_year_month
from presence_engine.services.compliance import compute_stats
from presence_engine.services.document_store import DocumentStore
from presence_engine.services.presence import find_month, get_month, list_presence_records, present_dates
from presence_engine.services.roster import RosterProvider, find_member

logger = logging.getLogger("presence_engine.overview")

DEFAULT_CONCURRENCY_LIMIT = 8


def summarize_overview(users: Sequence[OverviewUserItem]) -> OverviewTotals:
    total_users = len(users)
    total_present_days = sum(item.stats.present_days for item in users)
    return OverviewTotals(
        total_users=total_users,
        users_with_data=sum(1 for item in users if item.has_data),
        users_with_errors=sum(1 for item in users if item.failed),
        # Failed users keep zero stats, so the mean is always over the full roster.
        average_present_days=(total_present_days / total_users) if total_users else 0.0,
        users_met_all_saturdays=sum(1 for item in users if item.stats.meets_all_saturdays),
        users_met_8_days_2_sats=sum(1 for item in users if item.stats.meets_8_days_2_sats),
        users_met_10_weekdays=sum(1 for item in users if item.stats.meets_10_weekdays),
    )


async def build_presence_overview(
    store: DocumentStore,
    roster: Iterable[RosterMember],
    *,
    year: int,
    month: int,
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
    fetch_timeout_seconds: float | None = None,
) -> PresenceOverview:
    """Fetch every roster member's month concurrently and reduce the results.

    A failing or timed-out fetch never aborts the overview: that user gets
    empty stats and ``failed=True``. The result keeps roster order.
    """
    validate_year_month(year, month)
    members = list(roster)
    empty_stats = compute_stats(year, month, {})
    limit = max(1, int(concurrency_limit))
    semaphore = asyncio.Semaphore(limit)
    # The pool owns the read slots: a timed-out read keeps its worker until it returns.
    executor = ThreadPoolExecutor(max_workers=limit, thread_name_prefix="presence-overview")
    loop = asyncio.get_running_loop()

    def _fallback(member: RosterMember) -> OverviewUserItem:
        return OverviewUserItem(
            user_id=member.user_id,
            display_name=member.display_name,
            stats=empty_stats,
            present_dates=[],
            has_data=False,
            failed=True,
        )

    async def _fetch(member: RosterMember) -> OverviewUserItem:
        async with semaphore:
            try:
                record = await asyncio.wait_for(
                    loop.run_in_executor(
                        executor,
                        partial(find_month, store, user_id=member.user_id, year=year, month=month),
                    ),
                    timeout=fetch_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "overview_user_fetch_timed_out",
                    extra={"user_id": member.user_id, "timeout_seconds": fetch_timeout_seconds},
                )
                return _fallback(member)
            except Exception:
                logger.exception(
                    "overview_user_fetch_failed",
                    extra={"user_id": member.user_id, "year": year, "month": month_number_from_index(month)},
                )
                return _fallback(member)

        if record is None:
            return OverviewUserItem(
                user_id=member.user_id,
                display_name=member.display_name,
                stats=empty_stats,
                has_data=False,
            )
        return OverviewUserItem(
            user_id=member.user_id,
            display_name=member.display_name,
            stats=record.stats,
            present_dates=present_dates(record),
            has_data=True,
        )

    try:
        users = list(await asyncio.gather(*(_fetch(member) for member in members)))
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    totals = summarize_overview(users)

    logger.info(
        "presence_overview_built",
        extra={
            "year": year,
            "month": month_number_from_index(month),
            "total_users": totals.total_users,
            "users_with_errors": totals.users_with_errors,
        },
    )
    return PresenceOverview(
        users=users,
        totals=totals,
        year=year,
        month=month_number_from_index(month),
    )


def get_user_monthly_presence(
    store: DocumentStore,
    roster: RosterProvider,
    *,
    user_id: str,
    year: int,
    month: int,
) -> UserMonthlyPresenceResponse:
    validate_year_month(year, month)
    member = find_member(roster, user_id)
    if member is None:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")

    record = get_month(store, user_id=member.user_id, year=year, month=month)
    presence_records = list_presence_records(record)
    return UserMonthlyPresenceResponse(
        user=member,
        presence_records=presence_records,
        stats=record.stats,
        year=year,
        month=month_number_from_index(month),
        total_records=len(presence_records),
    )
