# cadence/core/errors.py
from __future__ import annotations

from datetime import date


class InvalidRule(ValueError):
    """
    Raised when a recurrence rule (or the series built from it) is malformed.

    This is the only scheduling error surfaced to API clients, and only at
    creation time.
    """


class SeriesCompleted(Exception):
    """
    Signal raised by the occurrence calculator when a series has no further
    occurrences (end date passed, or a single-shot event).

    Not an error: callers translate it into the `completed` status.
    """

    def __init__(self, candidate_date: date | None = None) -> None:
        self.candidate_date = candidate_date
        if candidate_date is None:
            message = "series has no further occurrences"
        else:
            message = f"next occurrence {candidate_date.isoformat()} is past the end date"
        super().__init__(message)


class UnknownTimezone(LookupError):
    """
    Raised when a timezone identifier is not present in the zone database.
    """

    def __init__(self, name: str | None) -> None:
        self.name = name
        super().__init__(f"Unknown timezone identifier: {name!r}")


class CollaboratorFailure(RuntimeError):
    """
    Raised when the external calendar/video API cannot be reached, is not
    configured, or returns a non-2xx response.
    """


class CASConflict(RuntimeError):
    """
    Raised when a compare-and-swap write finds that the stored occurrence no
    longer matches the value the advancement was computed from.

    Expected under overlapping sweeps; callers treat it as "already handled".
    """

    def __init__(self, series_id: int) -> None:
        self.series_id = series_id
        super().__init__(f"Series {series_id} was advanced concurrently")
