# cadence/schemas/occurrence.py
from datetime import datetime

from pydantic import BaseModel, Field


class OccurrenceEvent(BaseModel):
    """
    A materialized meeting occurrence handed to the calendar/video provider
    when a series is created or advanced. Never persisted by this service.
    """

    series_id: int = Field(..., description="Identifier of the meeting series.")
    group_id: str = Field(..., description="Study group the meeting belongs to.")
    title: str = Field(..., description="Meeting title shown in the calendar.")
    start_utc: datetime = Field(..., description="UTC start of this occurrence.")
    end_utc: datetime = Field(..., description="UTC end (start + duration).")
    timezone: str = Field(
        ...,
        description="Series anchor timezone; the provider expands recurrence in this zone.",
        examples=["America/New_York"],
    )
    recurrence: str | None = Field(
        None,
        description="RRULE of the series, or None for a single meeting.",
        examples=["RRULE:FREQ=WEEKLY;BYDAY=MO;WKST=SU"],
    )
    external_event_id: str | None = Field(
        None,
        description="Provider event id from a previous call; present means update.",
    )
