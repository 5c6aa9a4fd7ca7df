"""
Repository for subscription management.
"""

from typing import List, Optional
from sqlalchemy import select

from common.repositories.base import BaseRepository
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.billing.models.domain.enums import SubscriptionStatus
from common.core.otel_axiom_exporter import trace_span

CURRENT_STATUSES = [s.value for s in SubscriptionStatus if s.is_current()]


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    """Repository for managing user subscriptions."""

    def __init__(self):
        super().__init__(SubscriptionEntity, Subscription)

    @trace_span
    async def get_by_provider_id(
        self, provider_subscription_id: str
    ) -> Optional[Subscription]:
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(
                    SubscriptionEntity.provider_subscription_id
                    == provider_subscription_id
                )
                .execution_options(populate_existing=True)
            )
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def get_current_for_user(self, user_id: int) -> Optional[Subscription]:
        """Newest subscription in a current status (trialing, active, past_due, paused)."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(
                    SubscriptionEntity.user_id == user_id,
                    SubscriptionEntity.status.in_(CURRENT_STATUSES),
                )
                .order_by(
                    SubscriptionEntity.created_at.desc(), SubscriptionEntity.id.desc()
                )
                .limit(1)
            )
            db_subscription = result.scalars().first()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def list_for_user(self, user_id: int) -> List[Subscription]:
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(SubscriptionEntity.user_id == user_id)
                .order_by(
                    SubscriptionEntity.created_at.desc(), SubscriptionEntity.id.desc()
                )
            )
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def upsert_by_provider_id(
        self, create_model: SubscriptionCreateModel
    ) -> Subscription:
        """
        Insert, or overwrite the row with the same provider subscription id.

        Callers hold the per-subscription event lock, so the read-then-write
        cannot interleave with another event for the same id.
        """
        existing = await self.get_by_provider_id(create_model.provider_subscription_id)
        if existing is None:
            return await self.create(create_model)

        update_model = SubscriptionUpdateModel(
            plan_id=create_model.plan_id,
            status=create_model.status,
            billing_interval=create_model.billing_interval,
            renew_at=create_model.renew_at,
            cancel_at=create_model.cancel_at,
        )
        return await self.update(existing.id, update_model)
