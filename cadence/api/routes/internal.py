# cadence/api/routes/internal.py
from datetime import datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.api.dependencies.internal_auth import verify_internal_api_key
from cadence.db.session import get_db
from cadence.schemas.sweep import SweepSummary
from cadence.services.sweeper import run_advancement_sweep

router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_api_key)],
)


@router.post(
    "/run-advancement-sweep",
    response_model=SweepSummary,
    status_code=HTTPStatus.OK,
    summary="Advance every meeting series whose occurrence has passed",
    description=(
        "Moves each active series with an elapsed `current_occurrence` to its next "
        "occurrence (or marks it completed once past its end date), and notifies "
        "the calendar provider of the new occurrence.\n\n"
        "Intended to be called every few minutes by cron or another scheduler. "
        "Safe to call repeatedly or concurrently: a series is never advanced twice "
        "for the same occurrence.\n\n"
        "Protected via the `X-Internal-Api-Key` header when configured."
    ),
    responses={
        200: {
            "description": "Sweep finished. Per-series outcomes are included.",
            "content": {
                "application/json": {
                    "example": {
                        "started_at": "2025-03-10T23:05:00Z",
                        "finished_at": "2025-03-10T23:05:01Z",
                        "scanned": 2,
                        "advanced": 1,
                        "completed": 1,
                        "skipped_conflicts": 0,
                        "failed": 0,
                        "collaborator_failures": 0,
                        "results": [
                            {
                                "series_id": 1,
                                "group_id": "group-42",
                                "outcome": "advanced",
                                "previous_occurrence": "2025-03-10T23:00:00Z",
                                "current_occurrence": "2025-03-12T23:00:00Z",
                                "calendar_synced": True,
                                "error": None,
                            }
                        ],
                    }
                }
            },
        },
        401: {"description": "Missing or invalid internal API key (if configured)."},
    },
)
async def trigger_advancement_sweep(
    now: datetime | None = Query(
        default=None,
        description=(
            "Reference instant for the sweep. Defaults to the current server time; "
            "mostly useful for replays and testing."
        ),
        examples=["2025-03-10T23:05:00Z"],
    ),
    db: AsyncSession = Depends(get_db),
) -> SweepSummary:
    return await run_advancement_sweep(db=db, now=now)
