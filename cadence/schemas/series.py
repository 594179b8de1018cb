# cadence/schemas/series.py
from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class RecurrencePattern(str, Enum):
    """
    Supported recurrence cadences. NONE is a single-shot meeting.
    """

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SeriesStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class LocalizedTime(BaseModel):
    """
    A stored UTC instant together with its rendering in the viewer's timezone.

    Clients should display `local` as-is instead of re-deriving local time
    from `utc`.
    """

    utc: datetime = Field(
        ...,
        description="Absolute instant as persisted (UTC).",
        examples=["2025-03-10T23:00:00Z"],
    )
    local: str = Field(
        ...,
        description="ISO-8601 rendering in the viewer timezone, including the UTC offset.",
        examples=["2025-03-10T19:00:00-04:00"],
    )
    timezone: str = Field(
        ...,
        description="Timezone actually used for `local` (UTC when the requested zone was unknown).",
        examples=["America/New_York"],
    )
    abbreviation: str | None = Field(
        None,
        description="Zone abbreviation in force at this instant (e.g. EDT).",
        examples=["EDT"],
    )
    timezone_warning: str | None = Field(
        None,
        description="Set when the requested viewer timezone was not recognized.",
    )


# --------------------------------------------------------------------------
# Create schema (POST /groups/{group_id}/series)
# --------------------------------------------------------------------------

class SeriesCreate(BaseModel):
    """
    Request body for scheduling a (possibly recurring) study-group meeting.

    Rule-level validation (interval bounds, weekday set, timezone) happens in
    the recurrence engine so that the same checks apply everywhere.
    """

    title: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Meeting title shown in calendars.",
        examples=["Romans study group"],
    )
    pattern: RecurrencePattern = Field(
        RecurrencePattern.WEEKLY,
        description="Recurrence cadence: none, daily, weekly or monthly.",
    )
    interval: int = Field(
        1,
        description="Repeat every N days/weeks/months.",
        examples=[2],
    )
    days_of_week: list[int | str] = Field(
        default_factory=list,
        description=(
            "Weekdays for weekly cadence, as indices (0=Sunday ... 6=Saturday) "
            "or English day names. Ignored for other patterns."
        ),
        examples=[[1, 3]],
    )
    end_date: date | None = Field(
        None,
        description="Optional last date (inclusive) in the series timezone.",
        examples=["2025-12-31"],
    )
    first_occurrence: datetime = Field(
        ...,
        description=(
            "Wall-clock time of the first meeting in `timezone` (no offset). "
            "If an offset is supplied, it is converted to `timezone` first."
        ),
        examples=["2025-03-03T19:00:00"],
    )
    timezone: str = Field(
        "UTC",
        description="IANA timezone of the creator; becomes the series anchor timezone.",
        examples=["America/New_York"],
    )
    duration_minutes: int | None = Field(
        None,
        ge=1,
        le=24 * 60,
        description="Meeting length; defaults to the configured duration.",
        examples=[60],
    )

    @field_validator("timezone")
    @classmethod
    def _strip_timezone(cls, value: str) -> str:
        return value.strip()


# --------------------------------------------------------------------------
# Read schemas
# --------------------------------------------------------------------------

class RecurrenceRead(BaseModel):
    pattern: RecurrencePattern
    interval: int
    days_of_week: list[int]
    end_date: date | None
    anchor_timezone: str
    description: str = Field(..., examples=["Every 2 weeks on Monday and Wednesday"])
    rrule: str | None = Field(
        None,
        description="RFC 5545 RRULE equivalent, as sent to the calendar provider.",
        examples=["RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;WKST=SU"],
    )


class SeriesRead(BaseModel):
    """
    Response schema for a meeting series. Every time field carries the raw
    UTC instant plus a rendering in the viewer's timezone.
    """

    id: int = Field(..., examples=[1])
    group_id: str = Field(..., examples=["group-42"])
    title: str
    status: SeriesStatus
    duration_minutes: int
    anchor_timezone: str = Field(..., examples=["America/New_York"])
    anchor: LocalizedTime
    current_occurrence: LocalizedTime
    recurrence: RecurrenceRead
    external_event_id: str | None = None
    last_advanced_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OccurrencePreview(BaseModel):
    group_id: str
    anchor_timezone: str
    status: SeriesStatus
    occurrences: list[LocalizedTime]
