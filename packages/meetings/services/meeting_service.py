"""
Meeting lifecycle service.

Starts and ends meetings, and enforces per-meeting time caps both when the
client polls its timer and from the periodic sweep. Closing is a conditional
update, so whichever path gets there first wins and the others observe the
closed row.
"""

from datetime import datetime, timedelta
from typing import Optional

from common.core.exceptions import NotFoundError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.base import utcnow
from common.db.scoped import transaction
from packages.billing.catalog import PlanCatalog, get_plan_catalog
from packages.billing.models.domain.plans import PlanConfig
from packages.billing.services.budget_evaluator import BudgetEvaluator
from packages.billing.services.usage_aggregator import UsageAggregator
from packages.meetings import guard
from packages.meetings.models.domain.meeting import (
    Meeting,
    MeetingClose,
    MeetingCreateModel,
    MeetingEndReason,
    MeetingListResponse,
    MeetingStartResult,
    MeetingTimerStatus,
    SweepResult,
)
from packages.meetings.repositories.meeting_repository import MeetingRepository
from packages.notifications.models.domain.notifications import (
    MeetingForceClosedMessage,
    MeetingTimeWarningMessage,
    QuotaExceededMessage,
    QuotaKind,
)
from packages.notifications.services.notification_publisher import (
    NotificationPublisher,
)
from packages.users.repositories.user_repository import UserRepository
from packages.users.services.user_service import UserService

logger = get_logger(__name__)


class MeetingService:
    def __init__(
        self,
        catalog: Optional[PlanCatalog] = None,
        notifications: Optional[NotificationPublisher] = None,
    ):
        self.catalog = catalog or get_plan_catalog()
        self.meeting_repo = MeetingRepository()
        self.user_repo = UserRepository()
        self.user_service = UserService()
        self.aggregator = UsageAggregator(meeting_repo=self.meeting_repo)
        self.evaluator = BudgetEvaluator(
            catalog=self.catalog,
            aggregator=self.aggregator,
            user_service=self.user_service,
        )
        self.notifications = notifications or NotificationPublisher()

    async def _plan_for_user(self, user_id: int) -> PlanConfig:
        user = await self.user_service.get_user_or_raise(user_id)
        return self.catalog.plan_for(user.current_plan)

    async def _get_owned_or_raise(self, meeting_id: int, user_id: int) -> Meeting:
        meeting = await self.meeting_repo.get(meeting_id, user_id=user_id)
        if not meeting:
            raise NotFoundError(f"Meeting {meeting_id} not found")
        return meeting

    @trace_span
    async def start_meeting(
        self,
        user_id: int,
        estimated_minutes: int = 30,
        title: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MeetingStartResult:
        """
        Check quotas and open a meeting in one transaction.

        A policy denial comes back as the decision with no meeting. Losing a
        race against a concurrent start raises InvariantViolationError from
        the partial unique index.
        """
        now = now or utcnow()

        async with transaction():
            decision = await self.evaluator.can_start_meeting(
                user_id, estimated_minutes, now
            )
            if not decision.allowed:
                return MeetingStartResult(decision=decision)

            user = await self.user_service.get_user_or_raise(user_id)
            plan = self.catalog.plan_for(user.current_plan)

            meeting = await self.meeting_repo.create_open_meeting(
                MeetingCreateModel(user_id=user_id, title=title, started_at=now)
            )
            if user.is_free:
                await self.user_repo.record_free_trial_start(user_id, now)

        logger.info(
            f"Started meeting {meeting.id} for user {user_id} (cap {plan.max_minutes_per_meeting}m)",
            extra={
                "user_id": user_id,
                "meeting_id": meeting.id,
                "plan_id": plan.id.value,
            },
        )
        return MeetingStartResult(
            meeting=meeting,
            decision=decision,
            max_minutes=plan.max_minutes_per_meeting,
        )

    async def _close(
        self,
        meeting: Meeting,
        reason: MeetingEndReason,
        now: datetime,
        max_minutes: Optional[int] = None,
    ) -> tuple[Meeting, bool]:
        """
        Close the meeting if still open. Returns the stored row and whether
        this call closed it.

        A meeting never runs past its cap, however late the close is observed.
        """
        ended_at = now
        if max_minutes is not None:
            ended_at = min(now, meeting.started_at + timedelta(minutes=max_minutes))

        closed = await self.meeting_repo.close_if_open(
            meeting.id,
            MeetingClose(
                ended_at=ended_at,
                duration_minutes=guard.compute_duration_minutes(
                    meeting.started_at, ended_at
                ),
                end_reason=reason,
            ),
        )
        stored = await self.meeting_repo.get(meeting.id)
        return stored, closed

    async def _after_forced_close(self, meeting: Meeting, now: datetime) -> None:
        await self.notifications.publish(
            MeetingForceClosedMessage(
                user_id=meeting.user_id,
                meeting_id=meeting.id,
                duration_minutes=meeting.duration_minutes or 0,
                end_reason=meeting.end_reason or MeetingEndReason.TIME_LIMIT,
                occurred_at=now,
            )
        )

    async def _notify_if_minutes_exhausted(
        self, meeting: Meeting, plan: PlanConfig
    ) -> None:
        limit = plan.max_minutes_per_month
        if limit is None or meeting.ended_at is None:
            return

        period = await self.evaluator.resolve_period(meeting.user_id, meeting.ended_at)
        used_after = await self.aggregator.minutes_used(meeting.user_id, period)
        used_before = used_after - (meeting.duration_minutes or 0)
        if not (used_before <= limit < used_after):
            return

        upgrade = self.catalog.upgrade_target(plan.id)
        await self.notifications.publish(
            QuotaExceededMessage(
                user_id=meeting.user_id,
                plan_id=plan.id,
                quota=QuotaKind.MEETING_MINUTES,
                used=used_after,
                limit=limit,
                upgrade_plan_id=upgrade.id if upgrade else None,
                occurred_at=meeting.ended_at,
            )
        )

    @trace_span
    async def end_meeting(
        self,
        meeting_id: int,
        user_id: int,
        reason: MeetingEndReason = MeetingEndReason.USER,
        now: Optional[datetime] = None,
    ) -> Meeting:
        """Close a meeting. Ending an already closed meeting returns it unchanged."""
        now = now or utcnow()
        meeting = await self._get_owned_or_raise(meeting_id, user_id)
        if not meeting.is_open:
            return meeting

        plan = await self._plan_for_user(user_id)
        stored, closed = await self._close(
            meeting, reason, now, plan.max_minutes_per_meeting
        )
        if not closed:
            return stored

        logger.info(
            f"Ended meeting {meeting_id} after {stored.duration_minutes} minutes ({reason.value})",
            extra={
                "user_id": user_id,
                "meeting_id": meeting_id,
                "duration_minutes": stored.duration_minutes,
                "end_reason": reason.value,
            },
        )
        if reason != MeetingEndReason.USER:
            await self._after_forced_close(stored, now)
        await self._notify_if_minutes_exhausted(stored, plan)
        return stored

    async def _enforce(
        self, meeting: Meeting, plan: PlanConfig, now: datetime
    ) -> tuple[Meeting, bool, int]:
        """Force-close an expired meeting or emit its due warnings.

        Returns (meeting, closed_here, warnings_sent).
        """
        max_minutes = plan.max_minutes_per_meeting

        if guard.is_expired(meeting, max_minutes, now):
            stored, closed = await self._close(
                meeting, MeetingEndReason.TIME_LIMIT, now, max_minutes
            )
            if closed:
                logger.info(
                    f"Force-closed meeting {meeting.id} at its {max_minutes} minute cap",
                    extra={"user_id": meeting.user_id, "meeting_id": meeting.id},
                )
                await self._after_forced_close(stored, now)
                await self._notify_if_minutes_exhausted(stored, plan)
            return stored, closed, 0

        sent = 0
        for warning in guard.due_warnings(meeting, max_minutes, now):
            if not await self.meeting_repo.mark_warning(meeting.id, warning, now):
                continue
            sent += 1
            await self.notifications.publish(
                MeetingTimeWarningMessage(
                    user_id=meeting.user_id,
                    meeting_id=meeting.id,
                    warning=warning,
                    remaining_seconds=int(
                        guard.remaining_seconds(meeting, max_minutes, now)
                    ),
                    occurred_at=now,
                )
            )
        if sent:
            meeting = await self.meeting_repo.get(meeting.id)
        return meeting, False, sent

    @trace_span
    async def check_timer(
        self, meeting_id: int, user_id: int, now: Optional[datetime] = None
    ) -> MeetingTimerStatus:
        """Timer as derived from stored timestamps; enforces the cap on the way."""
        now = now or utcnow()
        meeting = await self._get_owned_or_raise(meeting_id, user_id)
        plan = await self._plan_for_user(user_id)

        if meeting.is_open:
            meeting, _, _ = await self._enforce(meeting, plan, now)

        return guard.timer_status(meeting, plan.max_minutes_per_meeting, now)

    @trace_span
    async def enforce_time_limits(self, now: Optional[datetime] = None) -> SweepResult:
        """One sweep over every open meeting."""
        now = now or utcnow()
        result = SweepResult()
        plans: dict[int, PlanConfig] = {}

        for meeting in await self.meeting_repo.list_open():
            result.checked += 1
            try:
                if meeting.user_id not in plans:
                    plans[meeting.user_id] = await self._plan_for_user(meeting.user_id)
                _, closed, sent = await self._enforce(
                    meeting, plans[meeting.user_id], now
                )
            except NotFoundError:
                # Owner is gone; nothing left to meter against
                try:
                    _, closed = await self._close(meeting, MeetingEndReason.SWEEP, now)
                except Exception as e:
                    result.failed += 1
                    logger.error(
                        f"Failed to close orphaned meeting {meeting.id}: {e}",
                        exc_info=True,
                        extra={"meeting_id": meeting.id},
                    )
                    continue
                result.closed += int(closed)
                continue
            except Exception as e:
                result.failed += 1
                logger.error(
                    f"Failed to enforce time limit for meeting {meeting.id}: {e}",
                    exc_info=True,
                    extra={"meeting_id": meeting.id},
                )
                continue

            result.closed += int(closed)
            result.warnings_sent += sent

        if result.checked:
            logger.info(
                f"Meeting sweep: {result.checked} open, {result.closed} closed, "
                f"{result.warnings_sent} warnings, {result.failed} failed"
            )
        return result

    @trace_span
    async def list_meetings(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> MeetingListResponse:
        meetings, total = await self.meeting_repo.list_for_user(
            user_id, limit=limit, offset=offset
        )
        return MeetingListResponse(
            meetings=meetings, total=total, limit=limit, offset=offset
        )

    @trace_span
    async def get_meeting(self, meeting_id: int, user_id: int) -> Meeting:
        return await self._get_owned_or_raise(meeting_id, user_id)
