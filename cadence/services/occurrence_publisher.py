# cadence/services/occurrence_publisher.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.core.errors import CollaboratorFailure
from cadence.schemas.occurrence import OccurrenceEvent
from cadence.services.calendar_client import get_calendar_client
from cadence.services.recurrence import RecurrenceRule, to_rrule
from cadence.services.series_store import set_external_event_id

logger = logging.getLogger(__name__)


class OccurrenceSink(Protocol):
    async def upsert_occurrence(self, event: OccurrenceEvent) -> str:
        ...


def resolve_calendar(calendar: Optional[OccurrenceSink] = None) -> Optional[OccurrenceSink]:
    """
    Return `calendar` when given, otherwise the configured calendar client,
    or None when no calendar provider is configured.
    """
    if calendar is not None:
        return calendar
    try:
        return get_calendar_client()
    except CollaboratorFailure as exc:
        logger.debug("Calendar provider disabled: %s", exc)
        return None


def build_occurrence_event(
    *,
    series_id: int,
    group_id: str,
    title: str,
    duration_minutes: int,
    rule: RecurrenceRule,
    occurrence: datetime,
    external_event_id: Optional[str],
) -> OccurrenceEvent:
    return OccurrenceEvent(
        series_id=series_id,
        group_id=group_id,
        title=title,
        start_utc=occurrence,
        end_utc=occurrence + timedelta(minutes=duration_minutes),
        timezone=rule.anchor_timezone,
        recurrence=to_rrule(rule),
        external_event_id=external_event_id,
    )


async def publish_occurrence(
    db: AsyncSession,
    calendar: OccurrenceSink,
    event: OccurrenceEvent,
) -> bool:
    """
    Hand an occurrence to the calendar provider and remember the provider's
    event id.

    Provider failures, and a failure to store the returned event id, are
    logged and reported as False; they never undo the scheduling change that
    produced the occurrence.
    """
    try:
        event_id = await calendar.upsert_occurrence(event)
    except CollaboratorFailure as exc:
        logger.warning(
            "Calendar notification failed for series %s (group %s): %s",
            event.series_id,
            event.group_id,
            exc,
        )
        return False

    if event_id != event.external_event_id:
        try:
            await set_external_event_id(db, event.series_id, event_id)
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.warning(
                "Could not store calendar event id %s for series %s (group %s): %s",
                event_id,
                event.series_id,
                event.group_id,
                exc,
            )
            return False
    return True
