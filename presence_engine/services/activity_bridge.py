from __future__ import annotations

import logging
from datetime import datetime

from presence_engine.errors import ConflictError
from presence_engine.models import PresenceKind
from presence_engine.schemas import ActivityPresenceResult
from presence_engine.services.calendar_utils import parse_presence_date
from presence_engine.services.document_store import DocumentStore
from presence_engine.services.presence import mark_day

logger = logging.getLogger("presence_engine.activity_bridge")


def mark_from_activity(
    store: DocumentStore,
    *,
    user_id: str,
    activity_date: str,
    now_utc: datetime | None = None,
) -> ActivityPresenceResult:
    """Mark presence for a user who joined an event on ``activity_date``.

    A day that is already marked is not an error here.
    """
    parsed = parse_presence_date(activity_date)
    try:
        stats = mark_day(
            store,
            user_id=user_id,
            year=parsed.year,
            month=parsed.month,
            day=parsed.day,
            kind=PresenceKind.ACTIVITY,
            now_utc=now_utc,
        )
    except ConflictError:
        logger.info("activity_presence_already_marked", extra={"user_id": user_id, "date": parsed.iso})
        return ActivityPresenceResult(
            status="already_marked",
            message="Presence already marked for this date",
            date=parsed.iso,
        )

    return ActivityPresenceResult(
        status="marked",
        message="Presence marked through activity participation",
        date=parsed.iso,
        stats=stats,
    )
