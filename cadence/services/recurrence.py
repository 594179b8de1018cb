# cadence/services/recurrence.py
"""
Recurrence rules and the occurrence calculator.

All advancement arithmetic happens on local calendar dates inside the rule's
anchor timezone; the local time-of-day always comes from the anchor. Only the
final candidate is converted to UTC, with the offset in force on that date, so
"every Monday 19:00" stays at 19:00 local across DST changes while the UTC
instant shifts.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from dateutil.relativedelta import relativedelta

from cadence.core.config import get_settings
from cadence.core.errors import InvalidRule, SeriesCompleted, UnknownTimezone
from cadence.schemas.series import RecurrencePattern
from cadence.services.timezones import resolve_timezone, to_utc, to_wall_clock

# Index 0 is Sunday, matching the calendar provider's weekday numbering.
DAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)
DAY_NAMES_TO_NUMBERS = {name.lower(): index for index, name in enumerate(DAY_NAMES)}
RRULE_DAY_CODES = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")


def weekday_index(day: date) -> int:
    """
    Sunday-based weekday index (0=Sunday ... 6=Saturday).
    """
    return (day.weekday() + 1) % 7


def week_start(day: date) -> date:
    """
    The Sunday that starts the week containing `day`.
    """
    return day - timedelta(days=weekday_index(day))


def parse_weekday(value: int | str) -> int:
    """
    Accept a weekday index (0-6) or an English day name ('monday', 'Mon').
    """
    if isinstance(value, bool):
        raise InvalidRule(f"Invalid day of week: {value!r}")
    if isinstance(value, int):
        if not 0 <= value <= 6:
            raise InvalidRule("Invalid day of week. Must be 0-6 (Sunday-Saturday).")
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        if key.isdigit():
            return parse_weekday(int(key))
        if key in DAY_NAMES_TO_NUMBERS:
            return DAY_NAMES_TO_NUMBERS[key]
        for name, index in DAY_NAMES_TO_NUMBERS.items():
            if len(key) >= 2 and name.startswith(key):
                return index
    raise InvalidRule(f"Invalid day of week: {value!r}")


@dataclass(frozen=True)
class RecurrenceRule:
    """
    Immutable description of how a series repeats.

    Construction validates the rule and raises InvalidRule when:
    - interval is below 1 or above MAX_RECURRENCE_INTERVAL
    - pattern is weekly and days_of_week is empty
    - a weekday is outside 0-6
    - anchor_timezone is not a known zone identifier

    days_of_week is normalized to a sorted tuple and cleared for non-weekly
    patterns.
    """

    pattern: RecurrencePattern
    interval: int = 1
    days_of_week: tuple[int, ...] = field(default_factory=tuple)
    end_date: date | None = None
    anchor_timezone: str = "UTC"

    def __post_init__(self) -> None:
        try:
            pattern = RecurrencePattern(self.pattern)
        except ValueError:
            raise InvalidRule(
                "Invalid recurrence pattern. Must be none, daily, weekly, or monthly."
            ) from None
        object.__setattr__(self, "pattern", pattern)

        max_interval = get_settings().MAX_RECURRENCE_INTERVAL
        if isinstance(self.interval, bool) or not isinstance(self.interval, int):
            raise InvalidRule("Invalid interval. Must be an integer.")
        if self.interval < 1 or self.interval > max_interval:
            raise InvalidRule(f"Invalid interval. Must be between 1 and {max_interval}.")

        if pattern is RecurrencePattern.WEEKLY:
            days = tuple(sorted({parse_weekday(day) for day in self.days_of_week or ()}))
            if not days:
                raise InvalidRule("Weekly recurrence requires at least one day of the week.")
        else:
            days = ()
        object.__setattr__(self, "days_of_week", days)

        try:
            resolve_timezone(self.anchor_timezone)
        except UnknownTimezone as exc:
            raise InvalidRule(str(exc)) from exc

    @property
    def repeats(self) -> bool:
        return self.pattern is not RecurrencePattern.NONE


# --------------------------------------------------------------------------
# Occurrence calculator
# --------------------------------------------------------------------------

def next_occurrence(
    rule: RecurrenceRule,
    anchor_wall_clock: datetime,
    from_occurrence: datetime,
) -> datetime:
    """
    Compute the next occurrence strictly after `from_occurrence`.

    Parameters
    ----------
    rule:
        Validated recurrence rule.
    anchor_wall_clock:
        Naive local date-time of the first occurrence in rule.anchor_timezone.
        Supplies the time-of-day, the weekly cadence origin and the monthly
        day-of-month.
    from_occurrence:
        UTC instant of the occurrence being advanced from.

    Returns
    -------
    datetime
        Aware UTC instant of the next occurrence.

    Raises
    ------
    SeriesCompleted
        The rule never repeats, or the next local date is past end_date.
    InvalidRule
        The rule cannot produce a date (only possible for a rule that was
        invalid to begin with).
    """
    if not rule.repeats:
        raise SeriesCompleted()

    anchor_date = anchor_wall_clock.date()
    from_date = to_wall_clock(from_occurrence, rule.anchor_timezone).date()

    if rule.pattern is RecurrencePattern.DAILY:
        candidate = from_date + timedelta(days=rule.interval)
    elif rule.pattern is RecurrencePattern.WEEKLY:
        candidate = _next_weekly_date(rule, anchor_date, from_date)
    elif rule.pattern is RecurrencePattern.MONTHLY:
        candidate = _next_monthly_date(rule.interval, anchor_date, from_date)
    else:  # pragma: no cover
        raise InvalidRule(f"Unsupported recurrence pattern: {rule.pattern}")

    if rule.end_date is not None and candidate > rule.end_date:
        raise SeriesCompleted(candidate)

    local = datetime.combine(candidate, anchor_wall_clock.time())
    return to_utc(local, rule.anchor_timezone)


def _next_weekly_date(rule: RecurrenceRule, anchor_date: date, from_date: date) -> date:
    """
    Earliest date after `from_date` on one of the rule's weekdays, inside a
    week that is a multiple of `interval` weeks from the anchor's week.

    Weeks start on Sunday, so within one week the lowest weekday index is
    also the earliest date.
    """
    if not rule.days_of_week:
        raise InvalidRule("Weekly recurrence requires at least one day of the week.")

    anchor_week = week_start(anchor_date)
    candidate = from_date + timedelta(days=1)

    # The next valid week starts at most `interval` weeks away.
    for _ in range(7 * (rule.interval + 1)):
        weeks_from_anchor = (week_start(candidate) - anchor_week).days // 7
        if (
            weeks_from_anchor >= 0
            and weeks_from_anchor % rule.interval == 0
            and weekday_index(candidate) in rule.days_of_week
        ):
            return candidate
        candidate += timedelta(days=1)

    raise InvalidRule("Weekly recurrence produced no matching date.")  # pragma: no cover


def _next_monthly_date(interval: int, anchor_date: date, from_date: date) -> date:
    """
    `from_date` advanced by `interval` months, keeping the anchor's
    day-of-month and clamping it to the target month's length.

    The target month is `from_date`'s month plus `interval`, but the day is
    always the anchor's, never the previous (possibly clamped) date's: a
    series anchored on Jan 31 goes Feb 28, then Mar 31, not Mar 28. Both
    readings clamp into short months; only this one returns to the 31st.
    """
    months_elapsed = (from_date.year - anchor_date.year) * 12 + (
        from_date.month - anchor_date.month
    )
    return anchor_date + relativedelta(months=months_elapsed + interval)


# --------------------------------------------------------------------------
# Presentation helpers for the calendar provider and clients
# --------------------------------------------------------------------------

def to_rrule(rule: RecurrenceRule) -> str | None:
    """
    RFC 5545 RRULE equivalent of the rule, e.g.
    'RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;WKST=SU'.

    UNTIL is the last second of end_date in the anchor timezone, as UTC.
    Returns None for single-shot events.
    """
    if not rule.repeats:
        return None

    parts = [f"FREQ={rule.pattern.value.upper()}"]
    if rule.interval > 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.pattern is RecurrencePattern.WEEKLY:
        parts.append("BYDAY=" + ",".join(RRULE_DAY_CODES[day] for day in rule.days_of_week))
        parts.append("WKST=SU")
    if rule.end_date is not None:
        until = to_utc(datetime.combine(rule.end_date, time(23, 59, 59)), rule.anchor_timezone)
        parts.append(f"UNTIL={until.strftime('%Y%m%dT%H%M%SZ')}")

    return "RRULE:" + ";".join(parts)


def describe_rule(rule: RecurrenceRule) -> str:
    """
    Human-readable summary, e.g. 'Every 2 weeks on Monday and Wednesday'.
    """
    if not rule.repeats:
        description = "Does not repeat"
    else:
        unit = {
            RecurrencePattern.DAILY: "day",
            RecurrencePattern.WEEKLY: "week",
            RecurrencePattern.MONTHLY: "month",
        }[rule.pattern]
        if rule.interval == 1:
            description = f"Every {unit}"
        else:
            description = f"Every {rule.interval} {unit}s"

        if rule.pattern is RecurrencePattern.WEEKLY:
            names = [DAY_NAMES[day] for day in rule.days_of_week]
            if len(names) == 1:
                days_text = names[0]
            else:
                days_text = ", ".join(names[:-1]) + " and " + names[-1]
            description += f" on {days_text}"

    if rule.end_date is not None and rule.repeats:
        description += f" until {rule.end_date.isoformat()}"

    return description
