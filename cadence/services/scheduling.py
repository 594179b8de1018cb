# cadence/services/scheduling.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cadence.core.config import get_settings
from cadence.models.meeting_series import MeetingSeries
from cadence.schemas.series import (
    LocalizedTime,
    OccurrencePreview,
    RecurrenceRead,
    SeriesCreate,
    SeriesRead,
    SeriesStatus,
)
from cadence.services.display import render_local
from cadence.services.occurrence_publisher import (
    OccurrenceSink,
    build_occurrence_event,
    publish_occurrence,
    resolve_calendar,
)
from cadence.services.recurrence import RecurrenceRule, describe_rule, to_rrule
from cadence.services.series_state import create_series, preview_occurrences
from cadence.services.series_store import insert_series, state_from_record

logger = logging.getLogger(__name__)


def rule_from_payload(payload: SeriesCreate) -> RecurrenceRule:
    """
    Build (and validate) the recurrence rule described by a create request.
    Raises InvalidRule.
    """
    return RecurrenceRule(
        pattern=payload.pattern,
        interval=payload.interval,
        days_of_week=tuple(payload.days_of_week),
        end_date=payload.end_date,
        anchor_timezone=payload.timezone,
    )


async def schedule_series(
    db: AsyncSession,
    *,
    group_id: str,
    payload: SeriesCreate,
    calendar: Optional[OccurrenceSink] = None,
) -> MeetingSeries:
    """
    Create the meeting series of a study group and announce its first
    occurrence to the calendar provider.

    Validation errors (InvalidRule) are raised before anything is stored.
    A calendar failure is logged; the series is kept.
    """
    settings = get_settings()
    rule = rule_from_payload(payload)
    state = create_series(rule, payload.first_occurrence)
    duration = payload.duration_minutes or settings.DEFAULT_MEETING_DURATION_MINUTES

    record = await insert_series(
        db,
        group_id=group_id,
        title=payload.title,
        state=state,
        duration_minutes=duration,
    )

    calendar = resolve_calendar(calendar)
    if calendar is not None:
        event = build_occurrence_event(
            series_id=record.id,
            group_id=record.group_id,
            title=record.title,
            duration_minutes=record.duration_minutes,
            rule=rule,
            occurrence=state.current_occurrence,
            external_event_id=None,
        )
        await publish_occurrence(db, calendar, event)
        # Picks up the stored event id, and reloads after a rolled-back write.
        await db.refresh(record)

    return record


def build_series_read(record: MeetingSeries, viewer_timezone: str | None) -> SeriesRead:
    """
    Response model for a stored series, with every instant also rendered
    in the viewer's timezone.
    """
    state = state_from_record(record)
    rule = state.rule
    return SeriesRead(
        id=record.id,
        group_id=record.group_id,
        title=record.title,
        status=state.status,
        duration_minutes=record.duration_minutes,
        anchor_timezone=rule.anchor_timezone,
        anchor=render_local(state.anchor_instant, viewer_timezone),
        current_occurrence=render_local(state.current_occurrence, viewer_timezone),
        recurrence=RecurrenceRead(
            pattern=rule.pattern,
            interval=rule.interval,
            days_of_week=list(rule.days_of_week),
            end_date=rule.end_date,
            anchor_timezone=rule.anchor_timezone,
            description=describe_rule(rule),
            rrule=to_rrule(rule),
        ),
        external_event_id=record.external_event_id,
        last_advanced_at=record.last_advanced_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def build_occurrence_preview(
    record: MeetingSeries,
    count: int,
    viewer_timezone: str | None,
) -> OccurrencePreview:
    """
    The stored occurrence plus the next ones, without advancing the series.
    A completed series previews nothing.
    """
    state = state_from_record(record)
    occurrences: list[LocalizedTime] = []
    if state.status is SeriesStatus.ACTIVE:
        occurrences = [
            render_local(instant, viewer_timezone)
            for instant in preview_occurrences(state, count)
        ]
    return OccurrencePreview(
        group_id=record.group_id,
        anchor_timezone=record.anchor_timezone,
        status=state.status,
        occurrences=occurrences,
    )
