from fastapi import APIRouter, Depends, Response, status

from presence_engine.dependencies import get_document_store
from presence_engine.schemas import (
    ActivityParticipationRequest,
    ActivityPresenceResult,
    MonthlyPresenceResponse,
    MonthlyStatsResponse,
    PresenceAck,
    PresenceMarkRequest,
    PresenceMarkResponse,
    RecordedMonthItem,
)
from presence_engine.services.activity_bridge import mark_from_activity
from presence_engine.services.calendar_utils import month_index_from_number, parse_presence_date
from presence_engine.services.document_store import DocumentStore
from presence_engine.services.presence import (
    build_monthly_presence_response,
    build_stats_view,
    get_month,
    list_recorded_months,
    mark_day,
    unmark_date,
)

router = APIRouter(tags=["presence"])


@router.post(
    "/api/users/{user_id}/presence",
    response_model=PresenceMarkResponse,
    status_code=status.HTTP_201_CREATED,
)
def mark_presence(
    user_id: str,
    payload: PresenceMarkRequest,
    store: DocumentStore = Depends(get_document_store),
) -> PresenceMarkResponse:
    parsed = parse_presence_date(payload.date)
    stats = mark_day(
        store,
        user_id=user_id,
        year=parsed.year,
        month=parsed.month,
        day=parsed.day,
        kind=payload.kind,
    )
    return PresenceMarkResponse(
        message="Presence marked successfully",
        date=parsed.iso,
        kind=payload.kind,
        stats=stats,
    )


@router.delete("/api/users/{user_id}/presence/{date}", response_model=PresenceAck)
def remove_presence(
    user_id: str,
    date: str,
    store: DocumentStore = Depends(get_document_store),
) -> PresenceAck:
    return unmark_date(store, user_id=user_id, date=date)


@router.get(
    "/api/users/{user_id}/presence/month/{year}/{month}",
    response_model=MonthlyPresenceResponse,
)
def get_monthly_presence(
    user_id: str,
    year: int,
    month: int,
    store: DocumentStore = Depends(get_document_store),
) -> MonthlyPresenceResponse:
    record = get_month(store, user_id=user_id, year=year, month=month_index_from_number(month))
    return build_monthly_presence_response(record)


@router.get(
    "/api/users/{user_id}/presence/stats/{year}/{month}",
    response_model=MonthlyStatsResponse,
)
def get_monthly_stats(
    user_id: str,
    year: int,
    month: int,
    store: DocumentStore = Depends(get_document_store),
) -> MonthlyStatsResponse:
    record = get_month(store, user_id=user_id, year=year, month=month_index_from_number(month))
    return build_stats_view(record)


@router.get(
    "/api/users/{user_id}/presence/months",
    response_model=list[RecordedMonthItem],
)
def get_recorded_months(
    user_id: str,
    store: DocumentStore = Depends(get_document_store),
) -> list[RecordedMonthItem]:
    return list_recorded_months(store, user_id=user_id)


@router.post(
    "/api/users/{user_id}/presence/activity-participation",
    response_model=ActivityPresenceResult,
    status_code=status.HTTP_201_CREATED,
)
def mark_activity_participation(
    user_id: str,
    payload: ActivityParticipationRequest,
    response: Response,
    store: DocumentStore = Depends(get_document_store),
) -> ActivityPresenceResult:
    result = mark_from_activity(store, user_id=user_id, activity_date=payload.activity_date)
    if result.status == "already_marked":
        response.status_code = status.HTTP_200_OK
    return result
