"""
Domain models for meetings.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from packages.billing.models.domain.usage import UsageDecision


class MeetingEndReason(str, Enum):
    USER = "user"
    TIME_LIMIT = "time_limit"
    SWEEP = "sweep"


class MeetingWarning(str, Enum):
    """Time-remaining warnings, in the order they fire."""

    FIVE_MINUTES = "five_minutes"
    ONE_MINUTE = "one_minute"

    @property
    def threshold_seconds(self) -> int:
        return 300 if self == MeetingWarning.FIVE_MINUTES else 60

    @property
    def marker_column(self) -> str:
        if self == MeetingWarning.FIVE_MINUTES:
            return "five_minute_warning_at"
        return "one_minute_warning_at"


class Meeting(BaseModel):
    id: int
    user_id: int
    title: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    end_reason: Optional[MeetingEndReason] = None
    five_minute_warning_at: Optional[datetime] = None
    one_minute_warning_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def warning_fired(self, warning: MeetingWarning) -> bool:
        return getattr(self, warning.marker_column) is not None


class MeetingCreateModel(BaseModel):
    user_id: int
    title: Optional[str] = None
    started_at: datetime


class MeetingClose(BaseModel):
    """Values written when a meeting closes."""

    ended_at: datetime
    duration_minutes: int
    end_reason: str

    @field_validator("end_reason", mode="before")
    @classmethod
    def validate_reason(cls, v):
        if isinstance(v, MeetingEndReason):
            return v.value
        return v


class MeetingTimerStatus(BaseModel):
    """Live timer for an open meeting, derived from stored timestamps."""

    meeting_id: int
    is_open: bool
    elapsed_seconds: int
    remaining_seconds: int
    max_minutes: int
    percent_elapsed: float
    warning: bool  # True from 80% elapsed
    expired: bool
    due_warnings: list[MeetingWarning] = []


class MeetingStartRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)
    estimated_minutes: int = Field(default=30, gt=0)


class CanStartMeetingRequest(BaseModel):
    estimated_minutes: int = Field(default=30, gt=0)


class MeetingStartResult(BaseModel):
    """Started meeting, or the decision that denied it."""

    meeting: Optional[Meeting] = None
    decision: UsageDecision
    max_minutes: Optional[int] = None


class MeetingListResponse(BaseModel):
    meetings: list[Meeting]
    total: int
    limit: int
    offset: int


class SweepResult(BaseModel):
    """Outcome of one enforcement pass."""

    checked: int = 0
    closed: int = 0
    warnings_sent: int = 0
    failed: int = 0
