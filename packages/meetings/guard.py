"""
Meeting lifecycle predicates.

Pure functions over stored timestamps. Nothing here reads a clock or the
database; callers pass ``now`` and act on the result.
"""

import math
from datetime import datetime

from packages.meetings.models.domain.meeting import (
    Meeting,
    MeetingTimerStatus,
    MeetingWarning,
)

TIMER_WARNING_PERCENT = 80.0


def elapsed_seconds(meeting: Meeting, now: datetime) -> float:
    end = meeting.ended_at or now
    return max(0.0, (end - meeting.started_at).total_seconds())


def remaining_seconds(meeting: Meeting, max_minutes: int, now: datetime) -> float:
    return max(0.0, max_minutes * 60 - elapsed_seconds(meeting, now))


def is_expired(meeting: Meeting, max_minutes: int, now: datetime) -> bool:
    """Open and at or past its per-meeting cap. Closed meetings never expire."""
    if not meeting.is_open:
        return False
    return elapsed_seconds(meeting, now) >= max_minutes * 60


def due_warnings(
    meeting: Meeting, max_minutes: int, now: datetime
) -> list[MeetingWarning]:
    """Warnings whose threshold has been reached and which have not fired yet."""
    if not meeting.is_open or is_expired(meeting, max_minutes, now):
        return []

    remaining = remaining_seconds(meeting, max_minutes, now)
    return [
        warning
        for warning in MeetingWarning
        if remaining <= warning.threshold_seconds and not meeting.warning_fired(warning)
    ]


def compute_duration_minutes(started_at: datetime, ended_at: datetime) -> int:
    """Whole minutes, half up: 89.5 minutes bills as 90."""
    seconds = max(0.0, (ended_at - started_at).total_seconds())
    return int(math.floor(seconds / 60 + 0.5))


def timer_status(
    meeting: Meeting, max_minutes: int, now: datetime
) -> MeetingTimerStatus:
    elapsed = elapsed_seconds(meeting, now)
    limit_seconds = max_minutes * 60
    percent = min(100.0, elapsed / limit_seconds * 100) if limit_seconds else 100.0
    return MeetingTimerStatus(
        meeting_id=meeting.id,
        is_open=meeting.is_open,
        elapsed_seconds=int(elapsed),
        remaining_seconds=int(remaining_seconds(meeting, max_minutes, now)),
        max_minutes=max_minutes,
        percent_elapsed=round(percent, 2),
        warning=percent >= TIMER_WARNING_PERCENT,
        expired=is_expired(meeting, max_minutes, now),
        due_warnings=due_warnings(meeting, max_minutes, now),
    )
