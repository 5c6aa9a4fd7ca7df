"""Notification messages published for other services (push, email)."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional, Union
from pydantic import BaseModel, Field

from packages.billing.models.domain.enums import PlanId
from packages.meetings.models.domain.meeting import MeetingEndReason, MeetingWarning


class NotificationKind(str, Enum):
    MEETING_TIME_WARNING = "meeting_time_warning"
    MEETING_FORCE_CLOSED = "meeting_force_closed"
    QUOTA_EXCEEDED = "quota_exceeded"


class QuotaKind(str, Enum):
    MEETING_MINUTES = "meeting_minutes"
    AI_BUDGET = "ai_budget"


class MeetingTimeWarningMessage(BaseModel):
    kind: Literal[NotificationKind.MEETING_TIME_WARNING] = (
        NotificationKind.MEETING_TIME_WARNING
    )
    user_id: int
    meeting_id: int
    warning: MeetingWarning
    remaining_seconds: int
    occurred_at: datetime


class MeetingForceClosedMessage(BaseModel):
    kind: Literal[NotificationKind.MEETING_FORCE_CLOSED] = (
        NotificationKind.MEETING_FORCE_CLOSED
    )
    user_id: int
    meeting_id: int
    duration_minutes: int
    end_reason: MeetingEndReason
    occurred_at: datetime


class QuotaExceededMessage(BaseModel):
    kind: Literal[NotificationKind.QUOTA_EXCEEDED] = NotificationKind.QUOTA_EXCEEDED
    user_id: int
    plan_id: PlanId
    quota: QuotaKind
    used: Decimal
    limit: Decimal
    upgrade_plan_id: Optional[PlanId] = None
    occurred_at: datetime


NotificationMessage = Union[
    MeetingTimeWarningMessage, MeetingForceClosedMessage, QuotaExceededMessage
]


class NotificationEnvelope(BaseModel):
    """Wire shape: one message, discriminated by ``kind``."""

    message: NotificationMessage = Field(discriminator="kind")
