import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common.core.exceptions import (
    InvariantViolationError,
    NotFoundError,
    TransientStoreError,
)
from common.db.base import Base
from packages.billing.catalog import PlanCatalog, build_default_catalog
from packages.billing.models.domain.enums import PlanId
from packages.meetings.models.database.meeting import MeetingEntity
from packages.meetings.models.domain.meeting import (
    MeetingCreateModel,
    MeetingEndReason,
    MeetingWarning,
)
from packages.meetings.services.meeting_service import MeetingService
from packages.notifications.services.notification_publisher import (
    NotificationPublisher,
)
from packages.users.models.database.user import UserEntity
from packages.users.services.user_service import UserService

START = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def catalog_with_plus_limit(minutes: int) -> PlanCatalog:
    return PlanCatalog(
        plan.model_copy(update={"max_minutes_per_month": minutes})
        if plan.id == PlanId.PLUS
        else plan
        for plan in build_default_catalog().all_plans()
    )


def published_kinds(queue) -> list[str]:
    return [call.args[1]["kind"] for call in queue.publish.call_args_list]


@pytest.fixture
def meeting_service(mock_message_queue):
    return MeetingService(
        catalog=build_default_catalog(),
        notifications=NotificationPublisher(message_queue=mock_message_queue),
    )


class TestStartMeeting:
    async def test_free_user_starts_trial_meeting(self, meeting_service, free_user):
        result = await meeting_service.start_meeting(
            free_user.id, estimated_minutes=15, title="Intro call", now=START
        )

        assert result.decision.allowed
        assert result.meeting.is_open
        assert result.meeting.title == "Intro call"
        assert result.max_minutes == 20

        user = await UserService().get_user(free_user.id)
        assert user.last_free_trial_started_at == START

    async def test_free_user_estimate_over_cap_denied(self, meeting_service, free_user):
        result = await meeting_service.start_meeting(
            free_user.id, estimated_minutes=30, now=START
        )

        assert not result.decision.allowed
        assert result.meeting is None
        assert "limited to 20 minutes" in result.decision.reason

    async def test_second_start_while_open_denied(self, meeting_service, plus_user):
        first = await meeting_service.start_meeting(plus_user.id, now=START)

        second = await meeting_service.start_meeting(
            plus_user.id, now=START + timedelta(minutes=1)
        )

        assert first.decision.allowed
        assert not second.decision.allowed
        assert "already have an active meeting" in second.decision.reason
        assert len(await meeting_service.meeting_repo.list_open()) == 1

    async def test_direct_second_open_insert_raises(self, meeting_service, plus_user):
        await meeting_service.start_meeting(plus_user.id, now=START)

        with pytest.raises(InvariantViolationError):
            await meeting_service.meeting_repo.create_open_meeting(
                MeetingCreateModel(user_id=plus_user.id, started_at=START)
            )

    async def test_free_trial_is_weekly(self, meeting_service, free_user):
        first = await meeting_service.start_meeting(
            free_user.id, estimated_minutes=15, now=START
        )
        await meeting_service.end_meeting(
            first.meeting.id, free_user.id, now=START + timedelta(minutes=10)
        )

        again = await meeting_service.start_meeting(
            free_user.id, estimated_minutes=15, now=START + timedelta(days=3)
        )
        next_week = await meeting_service.start_meeting(
            free_user.id, estimated_minutes=15, now=START + timedelta(days=7)
        )

        assert not again.decision.allowed
        assert "4 day(s)" in again.decision.reason
        assert next_week.decision.allowed

    async def test_unknown_user_raises(self, meeting_service):
        with pytest.raises(NotFoundError):
            await meeting_service.start_meeting(424242, now=START)



@pytest_asyncio.fixture
async def file_session_factory(tmp_path, monkeypatch):
    """Separate connections over one SQLite file, so inserts really race."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'meetings.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", factory)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocalReadonly", factory)
    yield factory
    await engine.dispose()


class TestConcurrentStart:
    async def test_parallel_starts_leave_one_open_meeting(
        self, file_session_factory, meeting_service
    ):
        async with file_session_factory() as session:
            user = UserEntity(email="racer@example.com", current_plan="plus")
            session.add(user)
            await session.commit()
            user_id = user.id

        outcomes = await asyncio.gather(
            *[meeting_service.start_meeting(user_id, now=START) for _ in range(8)],
            return_exceptions=True,
        )

        started = [o for o in outcomes if not isinstance(o, Exception) and o.meeting]
        assert len(started) == 1
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                assert isinstance(outcome, (InvariantViolationError, TransientStoreError))
            elif outcome.meeting is None:
                assert not outcome.decision.allowed

        async with file_session_factory() as session:
            open_count = await session.scalar(
                select(func.count(MeetingEntity.id)).where(
                    MeetingEntity.user_id == user_id, MeetingEntity.ended_at.is_(None)
                )
            )
        assert open_count == 1

class TestEndMeeting:
    async def test_end_records_rounded_duration(self, meeting_service, plus_user):
        started = await meeting_service.start_meeting(plus_user.id, now=START)

        ended = await meeting_service.end_meeting(
            started.meeting.id,
            plus_user.id,
            now=START + timedelta(minutes=44, seconds=31),
        )

        assert not ended.is_open
        assert ended.duration_minutes == 45
        assert ended.end_reason == MeetingEndReason.USER

    async def test_end_is_idempotent(self, meeting_service, plus_user, mock_message_queue):
        started = await meeting_service.start_meeting(plus_user.id, now=START)
        first = await meeting_service.end_meeting(
            started.meeting.id, plus_user.id, now=START + timedelta(minutes=30)
        )

        second = await meeting_service.end_meeting(
            started.meeting.id, plus_user.id, now=START + timedelta(minutes=50)
        )

        assert second.duration_minutes == first.duration_minutes == 30
        assert second.ended_at == first.ended_at
        mock_message_queue.publish.assert_not_called()

    async def test_late_end_is_capped(self, meeting_service, plus_user):
        started = await meeting_service.start_meeting(plus_user.id, now=START)

        ended = await meeting_service.end_meeting(
            started.meeting.id, plus_user.id, now=START + timedelta(hours=3)
        )

        assert ended.duration_minutes == 90
        assert ended.ended_at == START + timedelta(minutes=90)

    async def test_other_users_meeting_not_found(self, meeting_service, plus_user, free_user):
        started = await meeting_service.start_meeting(plus_user.id, now=START)

        with pytest.raises(NotFoundError):
            await meeting_service.end_meeting(started.meeting.id, free_user.id, now=START)

    async def test_crossing_monthly_limit_notifies(
        self, mock_message_queue, plus_user, make_meeting
    ):
        service = MeetingService(
            catalog=catalog_with_plus_limit(100),
            notifications=NotificationPublisher(message_queue=mock_message_queue),
        )
        await make_meeting(plus_user.id, datetime(2025, 3, 2, tzinfo=timezone.utc), 85)
        started = await service.start_meeting(plus_user.id, estimated_minutes=10, now=START)

        await service.end_meeting(
            started.meeting.id, plus_user.id, now=START + timedelta(minutes=20)
        )

        assert published_kinds(mock_message_queue) == ["quota_exceeded"]
        body = mock_message_queue.publish.call_args.args[1]
        assert body["quota"] == "meeting_minutes"
        assert body["upgrade_plan_id"] == "ultra"


class TestTimeLimitEnforcement:
    async def test_timer_poll_sends_warning_once(
        self, meeting_service, free_user, mock_message_queue
    ):
        started = await meeting_service.start_meeting(
            free_user.id, estimated_minutes=15, now=START
        )
        poll_at = START + timedelta(minutes=16)

        first = await meeting_service.check_timer(started.meeting.id, free_user.id, poll_at)
        second = await meeting_service.check_timer(
            started.meeting.id, free_user.id, poll_at + timedelta(seconds=5)
        )

        assert first.warning
        assert first.due_warnings == []
        assert second.due_warnings == []
        assert published_kinds(mock_message_queue) == ["meeting_time_warning"]
        body = mock_message_queue.publish.call_args.args[1]
        assert body["warning"] == MeetingWarning.FIVE_MINUTES.value
        assert body["remaining_seconds"] == 240

    async def test_timer_poll_closes_expired_meeting(
        self, meeting_service, free_user, mock_message_queue
    ):
        started = await meeting_service.start_meeting(
            free_user.id, estimated_minutes=15, now=START
        )

        status = await meeting_service.check_timer(
            started.meeting.id, free_user.id, START + timedelta(minutes=25)
        )

        assert not status.is_open
        assert status.elapsed_seconds == 20 * 60
        stored = await meeting_service.get_meeting(started.meeting.id, free_user.id)
        assert stored.end_reason == MeetingEndReason.TIME_LIMIT
        assert stored.duration_minutes == 20
        assert published_kinds(mock_message_queue) == ["meeting_force_closed"]

    async def test_sweep_closes_and_warns(
        self, meeting_service, free_user, plus_user, mock_message_queue
    ):
        await meeting_service.start_meeting(free_user.id, estimated_minutes=15, now=START)
        await meeting_service.start_meeting(
            plus_user.id, now=START + timedelta(minutes=-65)
        )
        sweep_at = START + timedelta(minutes=21)

        result = await meeting_service.enforce_time_limits(sweep_at)
        repeat = await meeting_service.enforce_time_limits(sweep_at + timedelta(seconds=15))

        assert result.checked == 2
        assert result.closed == 1
        assert result.warnings_sent == 1
        assert result.failed == 0
        assert repeat.checked == 1
        assert repeat.closed == 0
        assert repeat.warnings_sent == 0
        assert sorted(published_kinds(mock_message_queue)) == [
            "meeting_force_closed",
            "meeting_time_warning",
        ]

    async def test_sweep_closes_meeting_of_missing_user(self, meeting_service, make_meeting):
        orphan = await make_meeting(987654, START)

        result = await meeting_service.enforce_time_limits(START + timedelta(minutes=5))

        assert result.closed == 1
        stored = await meeting_service.meeting_repo.get(orphan.id)
        assert stored.end_reason == MeetingEndReason.SWEEP
        assert stored.duration_minutes == 5

    async def test_sweep_counts_failed_orphan_close_and_continues(
        self, meeting_service, make_meeting, monkeypatch
    ):
        broken = await make_meeting(987654, START)
        healthy = await make_meeting(987655, START + timedelta(minutes=1))
        close_if_open = meeting_service.meeting_repo.close_if_open

        async def flaky_close(meeting_id, close):
            if meeting_id == broken.id:
                raise ConnectionError("store unavailable")
            return await close_if_open(meeting_id, close)

        monkeypatch.setattr(meeting_service.meeting_repo, "close_if_open", flaky_close)

        result = await meeting_service.enforce_time_limits(START + timedelta(minutes=5))

        assert result.checked == 2
        assert result.failed == 1
        assert result.closed == 1
        assert (await meeting_service.meeting_repo.get(broken.id)).is_open
        assert not (await meeting_service.meeting_repo.get(healthy.id)).is_open

    async def test_publish_failure_does_not_fail_close(
        self, meeting_service, free_user, mock_message_queue
    ):
        mock_message_queue.publish.side_effect = ConnectionError("broker down")
        started = await meeting_service.start_meeting(
            free_user.id, estimated_minutes=15, now=START
        )

        status = await meeting_service.check_timer(
            started.meeting.id, free_user.id, START + timedelta(minutes=30)
        )

        assert not status.is_open


async def test_list_meetings(meeting_service, plus_user, make_meeting):
    for day in (1, 2, 3):
        await make_meeting(plus_user.id, datetime(2025, 3, day, tzinfo=timezone.utc), 10)

    page = await meeting_service.list_meetings(plus_user.id, limit=2, offset=2)

    assert page.total == 3
    assert len(page.meetings) == 1
    assert page.limit == 2
    assert page.offset == 2
