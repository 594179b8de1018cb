# cadence/models/meeting_series.py
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
)

from cadence.db.base import Base
from cadence.db.types import UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class MeetingSeries(Base):
    """
    Persisted scheduling state of a study group's (possibly recurring) meeting.

    The recurrence rule is embedded in the row and never shared. Only the
    advancement sweeper changes current_occurrence/status, and only through a
    compare-and-swap update keyed on the previous current_occurrence.
    """

    __tablename__ = "meeting_series"

    id = Column(Integer, primary_key=True, index=True)

    group_id = Column(String(64), nullable=False, unique=True, index=True)
    title = Column(String(255), nullable=False)

    # --- Recurrence rule ---
    recurrence_pattern = Column(String(16), nullable=False, default="none")
    recurrence_interval = Column(Integer, nullable=False, default=1)
    recurrence_days_of_week = Column(JSON, nullable=False, default=list)
    recurrence_end_date = Column(Date, nullable=True)
    anchor_timezone = Column(String(64), nullable=False, default="UTC")

    # Naive local time of the first meeting in anchor_timezone.
    anchor_wall_clock = Column(DateTime(timezone=False), nullable=False)
    anchor_instant = Column(UTCDateTime, nullable=False)

    # --- Mutable state ---
    current_occurrence = Column(UTCDateTime, nullable=False)
    status = Column(String(16), nullable=False, default="active")
    last_advanced_at = Column(UTCDateTime, nullable=True)

    duration_minutes = Column(Integer, nullable=False, default=60)
    external_event_id = Column(String(255), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_meeting_series_status_occurrence", "status", "current_occurrence"),
    )

    def __repr__(self) -> str:
        return (
            f"<MeetingSeries id={self.id} group_id={self.group_id} "
            f"pattern={self.recurrence_pattern} status={self.status} "
            f"current_occurrence={self.current_occurrence}>"
        )
