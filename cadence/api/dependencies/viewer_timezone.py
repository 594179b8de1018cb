# cadence/api/dependencies/viewer_timezone.py
from typing import Optional

from fastapi import Header, Query

from cadence.services.timezones import UTC_ZONE


async def get_viewer_timezone(
    x_timezone: Optional[str] = Header(
        default=None,
        alias="X-Timezone",
        description="IANA timezone of the viewer, e.g. 'Europe/Berlin'.",
    ),
    tz: Optional[str] = Query(
        default=None,
        description="Viewer timezone; overrides the X-Timezone header.",
        examples=["Europe/Berlin"],
    ),
) -> str:
    """
    Timezone used to render instants in responses.

    Unknown values are passed through; rendering falls back to UTC and flags
    the response instead of rejecting the request.
    """
    return (tz or x_timezone or UTC_ZONE).strip() or UTC_ZONE
