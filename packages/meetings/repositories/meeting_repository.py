from datetime import datetime
from typing import Optional
from sqlalchemy import select, update, func
from sqlalchemy import exc as sa_exc

from common.core.exceptions import InvariantViolationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.repositories.base import BaseRepository
from packages.meetings.models.database.meeting import MeetingEntity
from packages.meetings.models.domain.meeting import (
    Meeting,
    MeetingClose,
    MeetingCreateModel,
    MeetingWarning,
)

logger = get_logger(__name__)


class MeetingRepository(BaseRepository[MeetingEntity, Meeting]):
    def __init__(self):
        super().__init__(MeetingEntity, Meeting)

    @trace_span
    async def create_open_meeting(self, create_model: MeetingCreateModel) -> Meeting:
        """
        Insert an open meeting.

        Raises:
            InvariantViolationError: the user already has an open meeting
        """
        db_obj = MeetingEntity(**create_model.model_dump(exclude_none=True))
        async with self._get_session() as session:
            session.add(db_obj)
            try:
                await session.flush()
            except sa_exc.IntegrityError as e:
                logger.warning(
                    f"Rejected second open meeting for user {create_model.user_id}",
                    extra={"user_id": create_model.user_id},
                )
                raise InvariantViolationError(
                    "User already has an open meeting"
                ) from e
            await session.refresh(db_obj)
            return self._entity_to_domain(db_obj)

    @trace_span
    async def get_open_for_user(self, user_id: int) -> Optional[Meeting]:
        async with self._get_session() as session:
            result = await session.execute(
                select(MeetingEntity).where(
                    MeetingEntity.user_id == user_id,
                    MeetingEntity.ended_at.is_(None),
                )
            )
            entity = result.scalars().first()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def has_open_meeting(self, user_id: int) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                select(func.count(MeetingEntity.id)).where(
                    MeetingEntity.user_id == user_id,
                    MeetingEntity.ended_at.is_(None),
                )
            )
            return (result.scalar_one() or 0) > 0

    @trace_span
    async def list_open(self) -> list[Meeting]:
        """All open meetings, oldest first."""
        async with self._get_session() as session:
            result = await session.execute(
                select(MeetingEntity)
                .where(MeetingEntity.ended_at.is_(None))
                .order_by(MeetingEntity.started_at.asc())
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def close_if_open(self, meeting_id: int, close: MeetingClose) -> bool:
        """
        Close the meeting unless it is already closed.

        Returns True only for the caller whose update actually closed it.
        """
        async with self._get_session() as session:
            result = await session.execute(
                update(MeetingEntity)
                .where(
                    MeetingEntity.id == meeting_id,
                    MeetingEntity.ended_at.is_(None),
                )
                .values(close.model_dump())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    @trace_span
    async def mark_warning(
        self, meeting_id: int, warning: MeetingWarning, fired_at: datetime
    ) -> bool:
        """Set the warning marker if unset. True means this caller should emit it."""
        column = getattr(MeetingEntity, warning.marker_column)
        async with self._get_session() as session:
            result = await session.execute(
                update(MeetingEntity)
                .where(
                    MeetingEntity.id == meeting_id,
                    MeetingEntity.ended_at.is_(None),
                    column.is_(None),
                )
                .values({warning.marker_column: fired_at})
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    @trace_span
    async def list_for_user(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> tuple[list[Meeting], int]:
        """Page of a user's meetings, newest first, with the total count."""
        async with self._get_session() as session:
            total_result = await session.execute(
                select(func.count(MeetingEntity.id)).where(
                    MeetingEntity.user_id == user_id
                )
            )
            total = total_result.scalar_one() or 0

            result = await session.execute(
                select(MeetingEntity)
                .where(MeetingEntity.user_id == user_id)
                .order_by(MeetingEntity.started_at.desc(), MeetingEntity.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return self._entities_to_domain(result.scalars().all()), total

    @trace_span
    async def sum_minutes_for_period(
        self, user_id: int, start_date: datetime, end_date: datetime
    ) -> int:
        """Minutes of meetings that ended in [start_date, end_date)."""
        async with self._get_session() as session:
            result = await session.execute(
                select(func.coalesce(func.sum(MeetingEntity.duration_minutes), 0)).where(
                    MeetingEntity.user_id == user_id,
                    MeetingEntity.ended_at.is_not(None),
                    MeetingEntity.duration_minutes.is_not(None),
                    MeetingEntity.ended_at >= start_date,
                    MeetingEntity.ended_at < end_date,
                )
            )
            return int(result.scalar_one() or 0)

    @trace_span
    async def count_started_in_period(
        self, user_id: int, start_date: datetime, end_date: datetime
    ) -> int:
        async with self._get_session() as session:
            result = await session.execute(
                select(func.count(MeetingEntity.id)).where(
                    MeetingEntity.user_id == user_id,
                    MeetingEntity.started_at >= start_date,
                    MeetingEntity.started_at < end_date,
                )
            )
            return result.scalar_one() or 0
