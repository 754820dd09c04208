import asyncio

from fastapi import APIRouter, Depends

from presence_engine.dependencies import get_document_store, get_roster_provider
from presence_engine.schemas import PresenceOverview, UserMonthlyPresenceResponse
from presence_engine.services.calendar_utils import month_index_from_number, validate_year_month
from presence_engine.services.document_store import DocumentStore
from presence_engine.services.overview import build_presence_overview, get_user_monthly_presence
from presence_engine.services.roster import RosterProvider
from presence_engine.settings import get_overview_concurrency_limit, get_overview_fetch_timeout_seconds

router = APIRouter(tags=["overview"])


@router.get("/api/presence/overview/{year}/{month}", response_model=PresenceOverview)
async def get_presence_overview(
    year: int,
    month: int,
    store: DocumentStore = Depends(get_document_store),
    roster: RosterProvider = Depends(get_roster_provider),
) -> PresenceOverview:
    month_index = month_index_from_number(month)
    validate_year_month(year, month_index)
    members = await asyncio.to_thread(roster.list_members)
    return await build_presence_overview(
        store,
        members,
        year=year,
        month=month_index,
        concurrency_limit=get_overview_concurrency_limit(),
        fetch_timeout_seconds=get_overview_fetch_timeout_seconds(),
    )


@router.get(
    "/api/presence/users/{user_id}/{year}/{month}",
    response_model=UserMonthlyPresenceResponse,
)
def get_presence_for_user(
    user_id: str,
    year: int,
    month: int,
    store: DocumentStore = Depends(get_document_store),
    roster: RosterProvider = Depends(get_roster_provider),
) -> UserMonthlyPresenceResponse:
    return get_user_monthly_presence(
        store,
        roster,
        user_id=user_id,
        year=year,
        month=month_index_from_number(month),
    )
