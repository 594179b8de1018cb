# cadence/services/series_state.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from cadence.core.errors import InvalidRule, SeriesCompleted
from cadence.schemas.series import SeriesStatus
from cadence.services.recurrence import RecurrenceRule, next_occurrence
from cadence.services.timezones import ensure_utc, to_utc, to_wall_clock


@dataclass(frozen=True)
class SeriesState:
    """
    Scheduling state of one meeting series, detached from storage.

    anchor_wall_clock is the naive local time of the first meeting in
    rule.anchor_timezone; anchor_instant and current_occurrence are aware
    UTC instants.
    """

    rule: RecurrenceRule
    anchor_wall_clock: datetime
    anchor_instant: datetime
    current_occurrence: datetime
    status: SeriesStatus = SeriesStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status is SeriesStatus.ACTIVE


def create_series(rule: RecurrenceRule, first_wall_clock: datetime) -> SeriesState:
    """
    Build the initial state for a new series.

    `first_wall_clock` is the first meeting's local time in the rule's
    anchor timezone. An aware value is accepted and re-expressed in that
    zone first, so the same instant is never converted twice.
    """
    if first_wall_clock.tzinfo is not None:
        first_wall_clock = to_wall_clock(first_wall_clock, rule.anchor_timezone)

    first_wall_clock = first_wall_clock.replace(microsecond=0)

    if rule.end_date is not None and rule.end_date < first_wall_clock.date():
        raise InvalidRule("End date must be on or after the first occurrence.")

    anchor_instant = to_utc(first_wall_clock, rule.anchor_timezone)
    return SeriesState(
        rule=rule,
        anchor_wall_clock=first_wall_clock,
        anchor_instant=anchor_instant,
        current_occurrence=anchor_instant,
        status=SeriesStatus.ACTIVE,
    )


def advance(state: SeriesState) -> SeriesState:
    """
    Move the series one occurrence forward.

    On SeriesCompleted the status becomes completed and current_occurrence
    stays at the last valid occurrence. A completed series is returned as is.
    """
    if not state.is_active:
        return state

    try:
        upcoming = next_occurrence(
            state.rule,
            state.anchor_wall_clock,
            state.current_occurrence,
        )
    except SeriesCompleted:
        return replace(state, status=SeriesStatus.COMPLETED)

    return replace(state, current_occurrence=upcoming)


def advance_past(state: SeriesState, now: datetime) -> SeriesState:
    """
    Advance at least once, then keep advancing while the occurrence is
    still not after `now` (catch-up after sweeps were missed).
    """
    now = ensure_utc(now)
    advanced = advance(state)
    while advanced.is_active and advanced.current_occurrence <= now:
        advanced = advance(advanced)
    return advanced


def preview_occurrences(state: SeriesState, count: int) -> list[datetime]:
    """
    The current occurrence followed by up to `count - 1` upcoming ones,
    stopping early when the series completes. Never mutates `state`.
    """
    if count < 1:
        return []

    occurrences = [state.current_occurrence]
    cursor = state
    while len(occurrences) < count:
        cursor = advance(cursor)
        if not cursor.is_active:
            break
        occurrences.append(cursor.current_occurrence)
    return occurrences
