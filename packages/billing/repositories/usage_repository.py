"""
Repository for AI usage records.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import select, func

from common.repositories.base import BaseRepository
from packages.billing.models.database.usage import AiUsageEntity
from packages.billing.models.domain.usage import AiUsageRecord
from common.core.otel_axiom_exporter import trace_span


class AiUsageRepository(BaseRepository[AiUsageEntity, AiUsageRecord]):
    """Repository for AI usage records. Rows are never updated."""

    def __init__(self):
        super().__init__(AiUsageEntity, AiUsageRecord)

    @trace_span
    async def get_cost_for_period(
        self, user_id: int, start_date: datetime, end_date: datetime
    ) -> Decimal:
        """Sum of ``cost_usd`` over records created in [start_date, end_date)."""
        async with self._get_session() as session:
            result = await session.execute(
                select(func.coalesce(func.sum(AiUsageEntity.cost_usd), 0)).where(
                    AiUsageEntity.user_id == user_id,
                    AiUsageEntity.created_at >= start_date,
                    AiUsageEntity.created_at < end_date,
                )
            )
            total = result.scalar_one()
            return Decimal(str(total)) if total is not None else Decimal("0")

    @trace_span
    async def get_by_user(
        self, user_id: int, limit: int = 100, offset: int = 0
    ) -> list[AiUsageRecord]:
        async with self._get_session() as session:
            result = await session.execute(
                select(AiUsageEntity)
                .where(AiUsageEntity.user_id == user_id)
                .order_by(AiUsageEntity.created_at.desc(), AiUsageEntity.id.desc())
                .limit(limit)
                .offset(offset)
            )
            return self._entities_to_domain(result.scalars().all())
