# cadence/services/sweeper.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cadence.core.config import get_settings
from cadence.core.errors import CASConflict
from cadence.schemas.series import SeriesStatus
from cadence.schemas.sweep import AdvancementOutcome, SeriesAdvancement, SweepSummary
from cadence.services.occurrence_publisher import (
    OccurrenceSink,
    build_occurrence_event,
    publish_occurrence,
    resolve_calendar,
)
from cadence.services.series_state import advance_past
from cadence.services.series_store import (
    SeriesSnapshot,
    compare_and_swap_occurrence,
    find_elapsed_series,
)
from cadence.services.timezones import ensure_utc

logger = logging.getLogger(__name__)


async def advance_series(
    db: AsyncSession,
    snapshot: SeriesSnapshot,
    *,
    now: datetime,
    calendar: Optional[OccurrenceSink] = None,
    max_attempts: int = 3,
) -> SeriesAdvancement:
    """
    Advance one elapsed series past `now` and commit it.

    Raises CASConflict when another sweep already moved the series, and
    propagates anything else (e.g. InvalidRule from a stored rule) to the
    caller. The calendar provider is only notified after the write has
    committed.
    """
    state = snapshot.to_state()
    advanced = advance_past(state, now)

    await compare_and_swap_occurrence(
        db,
        series_id=snapshot.id,
        expected_occurrence=snapshot.current_occurrence,
        new_occurrence=advanced.current_occurrence,
        new_status=advanced.status,
        advanced_at=now,
        max_attempts=max_attempts,
    )

    if advanced.status is SeriesStatus.COMPLETED:
        logger.info(
            "Series %s (group %s) completed; last occurrence %s",
            snapshot.id,
            snapshot.group_id,
            advanced.current_occurrence.isoformat(),
        )
        return SeriesAdvancement(
            series_id=snapshot.id,
            group_id=snapshot.group_id,
            outcome=AdvancementOutcome.COMPLETED,
            previous_occurrence=snapshot.current_occurrence,
            current_occurrence=advanced.current_occurrence,
        )

    calendar_synced: Optional[bool] = None
    if calendar is not None:
        event = build_occurrence_event(
            series_id=snapshot.id,
            group_id=snapshot.group_id,
            title=snapshot.title,
            duration_minutes=snapshot.duration_minutes,
            rule=advanced.rule,
            occurrence=advanced.current_occurrence,
            external_event_id=snapshot.external_event_id,
        )
        calendar_synced = await publish_occurrence(db, calendar, event)

    return SeriesAdvancement(
        series_id=snapshot.id,
        group_id=snapshot.group_id,
        outcome=AdvancementOutcome.ADVANCED,
        previous_occurrence=snapshot.current_occurrence,
        current_occurrence=advanced.current_occurrence,
        calendar_synced=calendar_synced,
    )


async def run_advancement_sweep(
    db: AsyncSession,
    now: datetime | None = None,
    calendar: Optional[OccurrenceSink] = None,
) -> SweepSummary:
    """
    Advance every active series whose current occurrence has elapsed.

    Behavior
    --------
    - Scans active series with current_occurrence <= now (oldest first,
      at most SWEEP_BATCH_SIZE per run).
    - Each series is advanced past `now` with a conditional write, so
      concurrent or repeated sweeps never advance the same occurrence twice.
    - A series already advanced elsewhere is counted as a skipped conflict.
    - A failure on one series is logged and leaves that series untouched;
      the sweep continues with the next one.
    - Calendar notification failures are logged and counted but do not
      undo the advancement.

    Parameters
    ----------
    db:
        Open AsyncSession used for the scan and the per-series writes.
    now:
        Reference instant; defaults to the current UTC time.
    calendar:
        Calendar provider to notify. Defaults to the configured client, or
        no notification when none is configured.
    """
    settings = get_settings()
    started_at = datetime.now(tz=timezone.utc)
    now = ensure_utc(now) if now is not None else started_at
    calendar = resolve_calendar(calendar)

    snapshots = await find_elapsed_series(db, now, settings.SWEEP_BATCH_SIZE)
    logger.info(
        "Advancement sweep started at %s: %s elapsed series",
        now.isoformat(),
        len(snapshots),
    )

    results: list[SeriesAdvancement] = []
    for snapshot in snapshots:
        try:
            result = await advance_series(
                db,
                snapshot,
                now=now,
                calendar=calendar,
                max_attempts=settings.SWEEP_WRITE_RETRIES,
            )
        except CASConflict:
            logger.debug(
                "Series %s already advanced past %s; skipping",
                snapshot.id,
                snapshot.current_occurrence.isoformat(),
            )
            result = SeriesAdvancement(
                series_id=snapshot.id,
                group_id=snapshot.group_id,
                outcome=AdvancementOutcome.SKIPPED_CONFLICT,
                previous_occurrence=snapshot.current_occurrence,
                current_occurrence=snapshot.current_occurrence,
            )
        except Exception as exc:
            # One bad series must not stop the rest of the batch.
            logger.exception(
                "Failed to advance series %s (group %s)",
                snapshot.id,
                snapshot.group_id,
            )
            await db.rollback()
            result = SeriesAdvancement(
                series_id=snapshot.id,
                group_id=snapshot.group_id,
                outcome=AdvancementOutcome.FAILED,
                previous_occurrence=snapshot.current_occurrence,
                current_occurrence=snapshot.current_occurrence,
                error=str(exc) or exc.__class__.__name__,
            )
        results.append(result)

    def count(outcome: AdvancementOutcome) -> int:
        return sum(1 for r in results if r.outcome == outcome)

    summary = SweepSummary(
        started_at=started_at,
        finished_at=datetime.now(tz=timezone.utc),
        scanned=len(snapshots),
        advanced=count(AdvancementOutcome.ADVANCED),
        completed=count(AdvancementOutcome.COMPLETED),
        skipped_conflicts=count(AdvancementOutcome.SKIPPED_CONFLICT),
        failed=count(AdvancementOutcome.FAILED),
        collaborator_failures=sum(1 for r in results if r.calendar_synced is False),
        results=results,
    )

    logger.info(
        "Advancement sweep finished: scanned=%s advanced=%s completed=%s "
        "conflicts=%s failed=%s calendar_failures=%s",
        summary.scanned,
        summary.advanced,
        summary.completed,
        summary.skipped_conflicts,
        summary.failed,
        summary.collaborator_failures,
    )
    return summary
