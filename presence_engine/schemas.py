from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from presence_engine.models import PresenceKind


class PresenceEntry(BaseModel):
    kind: PresenceKind
    marked_at: datetime


class ComplianceStats(BaseModel):
    total_days: int
    present_days: int
    total_saturdays: int
    present_saturdays: int
    meets_all_saturdays: bool
    meets_8_days_2_sats: bool
    meets_10_weekdays: bool
    is_compliant: bool

    model_config = ConfigDict(frozen=True)


class MonthlyPresenceRecord(BaseModel):
    """Stored presence for one user and one month. ``month`` is 0-based."""

    user_id: str
    year: int
    month: int = Field(ge=0, le=11)
    entries: dict[str, PresenceEntry] = Field(default_factory=dict)
    stats: ComplianceStats
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PresenceRecordItem(BaseModel):
    id: str
    date: str
    kind: PresenceKind
    marked_at: datetime


class PresenceMarkRequest(BaseModel):
    date: str = Field(min_length=1, max_length=32)
    kind: PresenceKind = PresenceKind.MANUAL


class PresenceMarkResponse(BaseModel):
    message: str
    date: str
    kind: PresenceKind
    stats: ComplianceStats


class PresenceAck(BaseModel):
    message: str
    date: str
    stats: ComplianceStats


class MonthlyPresenceResponse(BaseModel):
    presence_records: list[PresenceRecordItem] = Field(default_factory=list)
    year: int
    month: int
    count: int
    stats: ComplianceStats


class MonthlyStatsResponse(BaseModel):
    stats: ComplianceStats
    year: int
    month: int
    saturdays: list[str] = Field(default_factory=list)
    present_saturdays: list[str] = Field(default_factory=list)


class RecordedMonthItem(BaseModel):
    year: int
    month: int
    present_days: int
    is_compliant: bool
    updated_at: datetime | None = None


class ActivityParticipationRequest(BaseModel):
    activity_date: str = Field(min_length=1, max_length=32)


class ActivityPresenceResult(BaseModel):
    status: Literal["marked", "already_marked"]
    message: str
    date: str
    kind: PresenceKind = PresenceKind.ACTIVITY
    stats: ComplianceStats | None = None


class RosterMember(BaseModel):
    user_id: str = Field(min_length=1)
    display_name: str


class OverviewUserItem(BaseModel):
    user_id: str
    display_name: str
    stats: ComplianceStats
    present_dates: list[str] = Field(default_factory=list)
    has_data: bool
    failed: bool = False


class OverviewTotals(BaseModel):
    total_users: int
    users_with_data: int
    users_with_errors: int
    average_present_days: float
    users_met_all_saturdays: int
    users_met_8_days_2_sats: int
    users_met_10_weekdays: int


class PresenceOverview(BaseModel):
    users: list[OverviewUserItem] = Field(default_factory=list)
    totals: OverviewTotals
    year: int
    month: int


class UserMonthlyPresenceResponse(BaseModel):
    user: RosterMember
    presence_records: list[PresenceRecordItem] = Field(default_factory=list)
    stats: ComplianceStats
    year: int
    month: int
    total_records: int
