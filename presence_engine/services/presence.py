from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as SchemaValidationError

from presence_engine.errors import ConflictError, NotFoundError, UpstreamError, ValidationError
from presence_engine.models import PresenceKind
from presence_engine.schemas import (
    ComplianceStats,
    MonthlyPresenceRecord,
    MonthlyPresenceResponse,
    MonthlyStatsResponse,
    PresenceAck,
    PresenceEntry,
    PresenceRecordItem,
    RecordedMonthItem,
)
from presence_engine.services.calendar_utils import (
    format_presence_date,
    month_number_from_index,
    monthly_document_key,
    monthly_document_prefix,
    normalize_day,
    parse_presence_date,
    saturdays_of,
    validate_year_month,
)
from presence_engine.services.compliance import compute_stats, present_saturday_days
from presence_engine.services.document_store import DocumentStore

logger = logging.getLogger("presence_engine.presence")


def _utcnow(now_utc: datetime | None) -> datetime:
    if now_utc is None:
        return datetime.now(timezone.utc)
    if now_utc.tzinfo is None:
        return now_utc.replace(tzinfo=timezone.utc)
    return now_utc.astimezone(timezone.utc)


def _validate_user_id(user_id: str) -> str:
    normalized = (user_id or "").strip() if isinstance(user_id, str) else ""
    if not normalized:
        raise ValidationError("User id is required")
    return normalized


def _coerce_kind(kind: PresenceKind | str) -> PresenceKind:
    try:
        return PresenceKind(kind)
    except ValueError as exc:
        raise ValidationError(f"Unknown presence kind: {kind}") from exc


def _record_from_payload(payload: dict[str, Any], *, user_id: str, year: int, month: int) -> MonthlyPresenceRecord:
    # Stats are never read back from storage; they are derived from entries.
    entries = payload.get("entries") or {}
    if not isinstance(entries, dict):
        raise UpstreamError(f"Stored presence document for {user_id} is malformed")
    for day in entries:
        try:
            if normalize_day(year, month, day) != day:
                raise ValidationError(f"Day key {day!r} is not zero-padded")
        except ValidationError as exc:
            raise UpstreamError(f"Stored presence document for {user_id} is malformed") from exc
    try:
        return MonthlyPresenceRecord.model_validate(
            {
                "user_id": user_id,
                "year": year,
                "month": month,
                "entries": entries,
                "stats": compute_stats(year, month, entries),
                "created_at": payload.get("created_at"),
                "updated_at": payload.get("updated_at"),
            }
        )
    except SchemaValidationError as exc:
        raise UpstreamError(f"Stored presence document for {user_id} is malformed") from exc


def empty_monthly_record(user_id: str, year: int, month: int) -> MonthlyPresenceRecord:
    return MonthlyPresenceRecord(
        user_id=user_id,
        year=year,
        month=month,
        entries={},
        stats=compute_stats(year, month, {}),
    )


def find_month(store: DocumentStore, *, user_id: str, year: int, month: int) -> MonthlyPresenceRecord | None:
    user_id = _validate_user_id(user_id)
    validate_year_month(year, month)
    payload = store.get(monthly_document_key(user_id, year, month))
    if payload is None:
        return None
    return _record_from_payload(payload, user_id=user_id, year=year, month=month)


def get_month(store: DocumentStore, *, user_id: str, year: int, month: int) -> MonthlyPresenceRecord:
    """Return the stored month, or an empty record with the same stats shape."""
    record = find_month(store, user_id=user_id, year=year, month=month)
    if record is None:
        return empty_monthly_record(user_id.strip(), year, month)
    return record


def _save_record(store: DocumentStore, record: MonthlyPresenceRecord) -> None:
    store.set(
        monthly_document_key(record.user_id, record.year, record.month),
        record.model_dump(mode="json"),
    )


def mark_day(
    store: DocumentStore,
    *,
    user_id: str,
    year: int,
    month: int,
    day: str | int,
    kind: PresenceKind | str = PresenceKind.MANUAL,
    now_utc: datetime | None = None,
) -> ComplianceStats:
    user_id = _validate_user_id(user_id)
    validate_year_month(year, month)
    day_key = normalize_day(year, month, day)
    presence_kind = _coerce_kind(kind)
    now = _utcnow(now_utc)

    record = find_month(store, user_id=user_id, year=year, month=month)
    if record is None:
        record = empty_monthly_record(user_id, year, month)
    elif day_key in record.entries:
        raise ConflictError("Presence already marked for this date")

    entries = dict(record.entries)
    entries[day_key] = PresenceEntry(kind=presence_kind, marked_at=now)
    updated = record.model_copy(
        update={
            "entries": entries,
            "stats": compute_stats(year, month, entries),
            "created_at": record.created_at or now,
            "updated_at": now,
        }
    )
    _save_record(store, updated)

    logger.info(
        "presence_marked",
        extra={
            "user_id": user_id,
            "date": format_presence_date(year, month, day_key),
            "kind": presence_kind,
            "present_days": updated.stats.present_days,
            "is_compliant": updated.stats.is_compliant,
        },
    )
    return updated.stats


def mark_date(
    store: DocumentStore,
    *,
    user_id: str,
    date: str,
    kind: PresenceKind | str = PresenceKind.MANUAL,
    now_utc: datetime | None = None,
) -> ComplianceStats:
    parsed = parse_presence_date(date)
    return mark_day(
        store,
        user_id=user_id,
        year=parsed.year,
        month=parsed.month,
        day=parsed.day,
        kind=kind,
        now_utc=now_utc,
    )


def unmark_day(
    store: DocumentStore,
    *,
    user_id: str,
    year: int,
    month: int,
    day: str | int,
    now_utc: datetime | None = None,
) -> PresenceAck:
    user_id = _validate_user_id(user_id)
    validate_year_month(year, month)
    day_key = normalize_day(year, month, day)
    now = _utcnow(now_utc)

    record = find_month(store, user_id=user_id, year=year, month=month)
    if record is None:
        raise NotFoundError("No presence record found for this month")
    if day_key not in record.entries:
        raise NotFoundError("Presence record not found for this date")

    entries = {key: value for key, value in record.entries.items() if key != day_key}
    updated = record.model_copy(
        update={
            "entries": entries,
            "stats": compute_stats(year, month, entries),
            "updated_at": now,
        }
    )
    _save_record(store, updated)

    iso_date = format_presence_date(year, month, day_key)
    logger.info(
        "presence_removed",
        extra={
            "user_id": user_id,
            "date": iso_date,
            "present_days": updated.stats.present_days,
        },
    )
    return PresenceAck(message="Presence removed successfully", date=iso_date, stats=updated.stats)


def unmark_date(
    store: DocumentStore,
    *,
    user_id: str,
    date: str,
    now_utc: datetime | None = None,
) -> PresenceAck:
    parsed = parse_presence_date(date)
    return unmark_day(
        store,
        user_id=user_id,
        year=parsed.year,
        month=parsed.month,
        day=parsed.day,
        now_utc=now_utc,
    )


def present_dates(record: MonthlyPresenceRecord) -> list[str]:
    return [format_presence_date(record.year, record.month, day) for day in sorted(record.entries)]


def list_presence_records(record: MonthlyPresenceRecord) -> list[PresenceRecordItem]:
    key = monthly_document_key(record.user_id, record.year, record.month)
    return [
        PresenceRecordItem(
            id=f"{key}_{day}",
            date=format_presence_date(record.year, record.month, day),
            kind=entry.kind,
            marked_at=entry.marked_at,
        )
        for day, entry in sorted(record.entries.items())
    ]


def build_monthly_presence_response(record: MonthlyPresenceRecord) -> MonthlyPresenceResponse:
    presence_records = list_presence_records(record)
    return MonthlyPresenceResponse(
        presence_records=presence_records,
        year=record.year,
        month=month_number_from_index(record.month),
        count=len(presence_records),
        stats=record.stats,
    )


def build_stats_view(record: MonthlyPresenceRecord) -> MonthlyStatsResponse:
    return MonthlyStatsResponse(
        stats=record.stats,
        year=record.year,
        month=month_number_from_index(record.month),
        saturdays=[
            format_presence_date(record.year, record.month, day)
            for day in saturdays_of(record.year, record.month)
        ],
        present_saturdays=[
            format_presence_date(record.year, record.month, day)
            for day in present_saturday_days(record.year, record.month, record.entries)
        ],
    )


def list_recorded_months(store: DocumentStore, *, user_id: str) -> list[RecordedMonthItem]:
    user_id = _validate_user_id(user_id)
    items: list[RecordedMonthItem] = []
    for _key, payload in store.scan(monthly_document_prefix(user_id)):
        # The prefix also matches ids like "<user_id>_suffix".
        if payload.get("user_id") != user_id:
            continue
        year = payload.get("year")
        month = payload.get("month")
        try:
            validate_year_month(year, month)
        except ValidationError as exc:
            raise UpstreamError(f"Stored presence document for {user_id} has an invalid month") from exc
        record = _record_from_payload(payload, user_id=user_id, year=year, month=month)
        items.append(
            RecordedMonthItem(
                year=record.year,
                month=month_number_from_index(record.month),
                present_days=record.stats.present_days,
                is_compliant=record.stats.is_compliant,
                updated_at=record.updated_at,
            )
        )
    items.sort(key=lambda item: (item.year, item.month))
    return items
