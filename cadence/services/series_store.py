# cadence/services/series_store.py
"""
Persistence contract for meeting series.

current_occurrence/status are only ever written by
`compare_and_swap_occurrence`, which succeeds only if the stored occurrence
still equals the value the advancement was computed from.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.core.errors import CASConflict
from cadence.models.meeting_series import MeetingSeries
from cadence.schemas.series import SeriesStatus
from cadence.services.recurrence import RecurrenceRule
from cadence.services.series_state import SeriesState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeriesSnapshot:
    """
    Plain copy of a MeetingSeries row taken at scan time.

    Holds raw column values only; `to_state()` rebuilds (and re-validates)
    the recurrence rule, so a rule that became invalid surfaces per series
    instead of failing the whole scan.
    """

    id: int
    group_id: str
    title: str
    duration_minutes: int
    external_event_id: Optional[str]
    recurrence_pattern: str
    recurrence_interval: int
    recurrence_days_of_week: tuple[int, ...]
    recurrence_end_date: Optional[date]
    anchor_timezone: str
    anchor_wall_clock: datetime
    anchor_instant: datetime
    current_occurrence: datetime
    status: str

    @classmethod
    def from_record(cls, record: MeetingSeries) -> "SeriesSnapshot":
        return cls(
            id=record.id,
            group_id=record.group_id,
            title=record.title,
            duration_minutes=record.duration_minutes,
            external_event_id=record.external_event_id,
            recurrence_pattern=record.recurrence_pattern,
            recurrence_interval=record.recurrence_interval,
            recurrence_days_of_week=tuple(record.recurrence_days_of_week or ()),
            recurrence_end_date=record.recurrence_end_date,
            anchor_timezone=record.anchor_timezone,
            anchor_wall_clock=record.anchor_wall_clock,
            anchor_instant=record.anchor_instant,
            current_occurrence=record.current_occurrence,
            status=record.status,
        )

    def to_rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            # Coerced (and validated) by RecurrenceRule itself.
            pattern=self.recurrence_pattern,
            interval=self.recurrence_interval,
            days_of_week=self.recurrence_days_of_week,
            end_date=self.recurrence_end_date,
            anchor_timezone=self.anchor_timezone,
        )

    def to_state(self) -> SeriesState:
        return SeriesState(
            rule=self.to_rule(),
            anchor_wall_clock=self.anchor_wall_clock,
            anchor_instant=self.anchor_instant,
            current_occurrence=self.current_occurrence,
            status=SeriesStatus(self.status),
        )


def state_from_record(record: MeetingSeries) -> SeriesState:
    return SeriesSnapshot.from_record(record).to_state()


async def insert_series(
    db: AsyncSession,
    *,
    group_id: str,
    title: str,
    state: SeriesState,
    duration_minutes: int,
) -> MeetingSeries:
    """
    Persist a freshly created series and return the refreshed row.
    """
    rule = state.rule
    record = MeetingSeries(
        group_id=group_id,
        title=title,
        recurrence_pattern=rule.pattern.value,
        recurrence_interval=rule.interval,
        recurrence_days_of_week=list(rule.days_of_week),
        recurrence_end_date=rule.end_date,
        anchor_timezone=rule.anchor_timezone,
        anchor_wall_clock=state.anchor_wall_clock,
        anchor_instant=state.anchor_instant,
        current_occurrence=state.current_occurrence,
        status=state.status.value,
        duration_minutes=duration_minutes,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)

    logger.info(
        "Created series id=%s group_id=%s pattern=%s first_occurrence=%s",
        record.id,
        group_id,
        rule.pattern.value,
        state.current_occurrence.isoformat(),
    )
    return record


async def get_series_by_group(db: AsyncSession, group_id: str) -> MeetingSeries | None:
    result = await db.execute(select(MeetingSeries).where(MeetingSeries.group_id == group_id))
    return result.scalar_one_or_none()


async def list_series(
    db: AsyncSession,
    status: SeriesStatus | None = None,
) -> List[MeetingSeries]:
    stmt = select(MeetingSeries)
    if status is not None:
        stmt = stmt.where(MeetingSeries.status == status.value)
    result = await db.execute(stmt.order_by(MeetingSeries.id.asc()))
    return list(result.scalars().all())


async def find_elapsed_series(
    db: AsyncSession,
    now: datetime,
    limit: int,
) -> List[SeriesSnapshot]:
    """
    Active series whose current occurrence is at or before `now`, oldest
    first, detached from the session as snapshots.
    """
    stmt = (
        select(MeetingSeries)
        .where(
            MeetingSeries.status == SeriesStatus.ACTIVE.value,
            MeetingSeries.current_occurrence <= now,
        )
        .order_by(MeetingSeries.current_occurrence.asc(), MeetingSeries.id.asc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    snapshots = [SeriesSnapshot.from_record(record) for record in result.scalars().all()]
    # End the read transaction so later per-series writes start fresh.
    await db.rollback()
    return snapshots


async def compare_and_swap_occurrence(
    db: AsyncSession,
    *,
    series_id: int,
    expected_occurrence: datetime,
    new_occurrence: datetime,
    new_status: SeriesStatus,
    advanced_at: datetime | None = None,
    max_attempts: int = 3,
) -> None:
    """
    Conditionally write an advancement and commit it.

    The UPDATE only matches while the row is still active and still holds
    `expected_occurrence`. Raises CASConflict when nothing matched; that
    outcome is final and not retried. Transient OperationalErrors are retried
    up to `max_attempts` times before being re-raised.
    """
    if advanced_at is None:
        advanced_at = datetime.now(tz=timezone.utc)

    stmt = (
        update(MeetingSeries)
        .where(
            MeetingSeries.id == series_id,
            MeetingSeries.current_occurrence == expected_occurrence,
            MeetingSeries.status == SeriesStatus.ACTIVE.value,
        )
        .values(
            current_occurrence=new_occurrence,
            status=new_status.value,
            last_advanced_at=advanced_at,
        )
        .execution_options(synchronize_session=False)
    )

    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            result = await db.execute(stmt)
            if result.rowcount != 1:
                await db.rollback()
                raise CASConflict(series_id)
            await db.commit()
            return
        except OperationalError as exc:
            await db.rollback()
            if attempt >= attempts:
                raise
            logger.warning(
                "Transient error writing series %s (attempt %s/%s): %s",
                series_id,
                attempt,
                attempts,
                exc,
            )
            await asyncio.sleep(0.05 * attempt)


async def set_external_event_id(
    db: AsyncSession,
    series_id: int,
    external_event_id: str,
) -> None:
    """
    Remember the calendar provider's identifier for the series' event.

    Does not touch current_occurrence/status.
    """
    await db.execute(
        update(MeetingSeries)
        .where(MeetingSeries.id == series_id)
        .values(external_event_id=external_event_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
