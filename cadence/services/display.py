# cadence/services/display.py
from __future__ import annotations

import logging
from datetime import datetime

from cadence.core.errors import UnknownTimezone
from cadence.schemas.series import LocalizedTime
from cadence.services.timezones import UTC_ZONE, ensure_utc, resolve_timezone

logger = logging.getLogger(__name__)


def project(instant: datetime, viewer_timezone: str) -> str:
    """
    ISO-8601 rendering of a stored UTC instant in the viewer's zone,
    with the offset in force at that instant (e.g. '2025-03-10T19:00:00-04:00').

    Parsing the result gives back the same instant. Raises UnknownTimezone.
    """
    zone = resolve_timezone(viewer_timezone)
    return ensure_utc(instant).astimezone(zone).isoformat()


def render_local(instant: datetime, viewer_timezone: str | None) -> LocalizedTime:
    """
    Like `project`, but never fails on the viewer's zone: an unknown or
    missing zone falls back to UTC and the result carries a warning.
    """
    instant = ensure_utc(instant)
    requested = (viewer_timezone or UTC_ZONE).strip() or UTC_ZONE
    warning: str | None = None

    try:
        zone = resolve_timezone(requested)
        zone_name = requested
    except UnknownTimezone:
        logger.warning("Unknown viewer timezone %r; rendering in UTC", requested)
        zone = resolve_timezone(UTC_ZONE)
        zone_name = UTC_ZONE
        warning = f"Unknown timezone {requested!r}; times are shown in UTC."

    local = instant.astimezone(zone)
    return LocalizedTime(
        utc=instant,
        local=local.isoformat(),
        timezone=zone_name,
        abbreviation=local.tzname(),
        timezone_warning=warning,
    )
