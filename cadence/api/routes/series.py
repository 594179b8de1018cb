# cadence/api/routes/series.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.api.dependencies.viewer_timezone import get_viewer_timezone
from cadence.core.config import get_settings
from cadence.core.errors import InvalidRule
from cadence.db.session import get_db
from cadence.models.meeting_series import MeetingSeries
from cadence.schemas.series import OccurrencePreview, SeriesCreate, SeriesRead, SeriesStatus
from cadence.services.scheduling import (
    build_occurrence_preview,
    build_series_read,
    schedule_series,
)
from cadence.services.series_store import get_series_by_group, list_series

router = APIRouter(tags=["Series"])


def _group_id_path():
    return Path(
        ...,
        min_length=1,
        max_length=64,
        description="Identifier of the study group that owns the series.",
        examples=["group-42"],
    )


async def _get_series_or_404(db: AsyncSession, group_id: str) -> MeetingSeries:
    record = await get_series_by_group(db, group_id)
    if record is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"No meeting series for group '{group_id}'.",
        )
    return record


@router.post(
    "/groups/{group_id}/series",
    response_model=SeriesRead,
    status_code=HTTPStatus.CREATED,
    summary="Schedule the meeting series of a study group",
    description=(
        "Create a single or recurring meeting for a study group.\n\n"
        "`first_occurrence` is the wall-clock time of the first meeting in "
        "`timezone`; that zone becomes the series' anchor timezone, so the meeting "
        "keeps its local time across daylight-saving changes.\n\n"
        "Recurrence rules:\n"
        "- `interval` between 1 and 99\n"
        "- weekly series need at least one entry in `days_of_week` "
        "(0=Sunday ... 6=Saturday, or day names)\n"
        "- `end_date` (inclusive, anchor-local) may not be before the first meeting\n\n"
        "The first occurrence is sent to the calendar provider when one is configured; "
        "a provider failure does not prevent the series from being created."
    ),
    responses={
        201: {"description": "Series created."},
        400: {
            "description": "Invalid recurrence rule, or the group already has a series.",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "Weekly recurrence requires at least one day of the week.",
                    }
                }
            },
        },
    },
)
async def create_group_series(
    payload: SeriesCreate,
    group_id: str = _group_id_path(),
    viewer_timezone: str = Depends(get_viewer_timezone),
    db: AsyncSession = Depends(get_db),
) -> SeriesRead:
    """
    One series per group; a second create for the same group is rejected.
    """
    if await get_series_by_group(db, group_id) is not None:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Group '{group_id}' already has a meeting series.",
        )

    try:
        record = await schedule_series(db, group_id=group_id, payload=payload)
    except InvalidRule as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Group '{group_id}' already has a meeting series.",
        )

    return build_series_read(record, viewer_timezone)


@router.get(
    "/groups/{group_id}/series",
    response_model=SeriesRead,
    summary="Get the meeting series of a study group",
    description=(
        "Returns the series with its current occurrence. Every instant is given "
        "in UTC and rendered in the viewer's timezone (`tz` query parameter or "
        "`X-Timezone` header, UTC by default). Unknown viewer timezones fall back "
        "to UTC and set `timezone_warning`."
    ),
    responses={404: {"description": "The group has no meeting series."}},
)
async def get_group_series(
    group_id: str = _group_id_path(),
    viewer_timezone: str = Depends(get_viewer_timezone),
    db: AsyncSession = Depends(get_db),
) -> SeriesRead:
    record = await _get_series_or_404(db, group_id)
    return build_series_read(record, viewer_timezone)


@router.get(
    "/groups/{group_id}/series/occurrences",
    response_model=OccurrencePreview,
    summary="Preview upcoming occurrences",
    description=(
        "Lists the current occurrence followed by the next ones, computed from the "
        "series' rule without changing it. Stops early at the end date; a completed "
        "series returns an empty list."
    ),
    responses={
        400: {"description": "`count` exceeds the configured preview limit."},
        404: {"description": "The group has no meeting series."},
    },
)
async def preview_group_occurrences(
    group_id: str = _group_id_path(),
    count: int = Query(
        default=10,
        ge=1,
        description="Number of occurrences to list, including the current one.",
        examples=[10],
    ),
    viewer_timezone: str = Depends(get_viewer_timezone),
    db: AsyncSession = Depends(get_db),
) -> OccurrencePreview:
    limit = get_settings().MAX_PREVIEW_OCCURRENCES
    if count > limit:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"count must be at most {limit}.",
        )

    record = await _get_series_or_404(db, group_id)
    return build_occurrence_preview(record, count, viewer_timezone)


@router.get(
    "/series",
    response_model=list[SeriesRead],
    summary="List meeting series",
    description="All series ordered by id, optionally filtered by status.",
)
async def list_all_series(
    status: SeriesStatus | None = Query(
        default=None,
        description="Only return series with this status.",
        examples=["active"],
    ),
    viewer_timezone: str = Depends(get_viewer_timezone),
    db: AsyncSession = Depends(get_db),
) -> list[SeriesRead]:
    records = await list_series(db, status=status)
    return [build_series_read(record, viewer_timezone) for record in records]
