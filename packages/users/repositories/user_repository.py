from datetime import datetime
from sqlalchemy import update

from common.repositories.base import BaseRepository
from common.db.base import utcnow
from packages.users.models.database.user import UserEntity
from packages.users.models.domain.user import User
from packages.billing.models.domain.enums import PlanId
from common.core.otel_axiom_exporter import trace_span


class UserRepository(BaseRepository[UserEntity, User]):
    def __init__(self):
        super().__init__(UserEntity, User)

    @trace_span
    async def set_current_plan(self, user_id: int, plan_id: PlanId) -> bool:
        """Overwrite the cached plan. Returns False if the user does not exist."""
        async with self._get_session() as session:
            result = await session.execute(
                update(UserEntity)
                .where(UserEntity.id == user_id)
                .values(current_plan=plan_id.value, updated_at=utcnow())
            )
            return result.rowcount > 0

    @trace_span
    async def set_billing_customer_id(self, user_id: int, customer_id: str) -> None:
        async with self._get_session() as session:
            await session.execute(
                update(UserEntity)
                .where(UserEntity.id == user_id)
                .values(billing_customer_id=customer_id, updated_at=utcnow())
            )

    @trace_span
    async def record_free_trial_start(self, user_id: int, started_at: datetime) -> None:
        """Mark the start of a free-tier trial meeting."""
        async with self._get_session() as session:
            await session.execute(
                update(UserEntity)
                .where(UserEntity.id == user_id)
                .values(last_free_trial_started_at=started_at, updated_at=utcnow())
            )
