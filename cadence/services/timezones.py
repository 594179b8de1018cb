# cadence/services/timezones.py
"""
Timezone catalogue.

Thin wrapper around the standard zone database (`zoneinfo`, with the
`tzdata` package as fallback data source). It keeps two kinds of values apart:

- an *instant*: an aware `datetime` in UTC, which is what gets persisted;
- a *wall clock*: a naive local `datetime` that only has meaning together
  with a zone identifier (see `WallClock`).

`to_utc` and `to_wall_clock` are the only conversions between the two.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cadence.core.errors import UnknownTimezone

UTC_ZONE = "UTC"


def resolve_timezone(name: str | None) -> ZoneInfo:
    """
    Resolve an IANA zone identifier (e.g. 'America/New_York').

    Raises UnknownTimezone for empty, malformed or unknown identifiers.
    """
    if not name or not isinstance(name, str):
        raise UnknownTimezone(name)
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise UnknownTimezone(name) from exc


def is_known_timezone(name: str | None) -> bool:
    try:
        resolve_timezone(name)
    except UnknownTimezone:
        return False
    return True


def ensure_utc(instant: datetime) -> datetime:
    """
    Normalize an instant to aware UTC.

    Naive values are assumed to already be UTC (this is how the database
    driver hands them back on backends without timezone support).
    """
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def utc_offset_at(name: str, instant: datetime) -> timedelta:
    """
    Offset from UTC in force in zone `name` at the given instant.
    """
    zone = resolve_timezone(name)
    offset = ensure_utc(instant).astimezone(zone).utcoffset()
    return offset if offset is not None else timedelta(0)


def to_utc(wall_clock: datetime, zone_name: str) -> datetime:
    """
    Convert a local wall-clock time in `zone_name` to a UTC instant.

    The offset used is the one in force at that local date, not "now".
    Local times that do not exist (spring-forward gap) take the offset from
    before the transition, which moves them forward by the size of the gap.
    Ambiguous local times (fall-back overlap) resolve to the earlier instant.
    """
    if wall_clock.tzinfo is not None:
        raise ValueError("wall clock values must be naive; got an aware datetime")
    zone = resolve_timezone(zone_name)
    return wall_clock.replace(tzinfo=zone, fold=0).astimezone(timezone.utc)


def to_wall_clock(instant: datetime, zone_name: str) -> datetime:
    """
    Inverse of `to_utc`: the naive local time shown in `zone_name` at `instant`.
    """
    zone = resolve_timezone(zone_name)
    return ensure_utc(instant).astimezone(zone).replace(tzinfo=None)


@dataclass(frozen=True)
class WallClock:
    """
    A local date-time bound to the zone it is expressed in.
    """

    local: datetime
    zone: str

    def __post_init__(self) -> None:
        if self.local.tzinfo is not None:
            raise ValueError("WallClock.local must be a naive datetime")
        resolve_timezone(self.zone)

    @classmethod
    def from_instant(cls, instant: datetime, zone: str) -> "WallClock":
        return cls(local=to_wall_clock(instant, zone), zone=zone)

    def to_utc(self) -> datetime:
        return to_utc(self.local, self.zone)
