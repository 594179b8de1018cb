# cadence/schemas/sweep.py
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class AdvancementOutcome(str, Enum):
    """
    What happened to one elapsed series during an advancement sweep.
    """

    ADVANCED = "advanced"
    COMPLETED = "completed"
    SKIPPED_CONFLICT = "skipped_conflict"
    FAILED = "failed"


class SeriesAdvancement(BaseModel):
    series_id: int = Field(..., examples=[1])
    group_id: str = Field(..., examples=["group-42"])
    outcome: AdvancementOutcome
    previous_occurrence: datetime = Field(
        ...,
        description="Occurrence the sweep found elapsed (UTC).",
    )
    current_occurrence: datetime = Field(
        ...,
        description="Occurrence stored after this sweep (UTC). Unchanged unless advanced.",
    )
    calendar_synced: Optional[bool] = Field(
        None,
        description=(
            "True/False when the calendar provider was notified, None when no "
            "notification was attempted."
        ),
    )
    error: Optional[str] = Field(
        None,
        description="Failure reason for outcome=failed.",
    )


class SweepSummary(BaseModel):
    """
    Response body of the advancement sweep endpoint.
    """

    started_at: datetime
    finished_at: datetime
    scanned: int = Field(..., description="Elapsed active series found by the scan.")
    advanced: int = Field(..., description="Series moved to a future occurrence.")
    completed: int = Field(..., description="Series that reached their end date.")
    skipped_conflicts: int = Field(
        ...,
        description="Series already advanced by a concurrent sweep.",
    )
    failed: int = Field(..., description="Series left untouched because of an error.")
    collaborator_failures: int = Field(
        ...,
        description="Advanced series whose calendar notification failed.",
    )
    results: List[SeriesAdvancement] = Field(default_factory=list)
