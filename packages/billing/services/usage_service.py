"""
Service for recording AI usage.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.base import utcnow
from common.db.scoped import transaction
from packages.billing.ai_costs import calculate_request_cost
from packages.billing.catalog import PlanCatalog, get_plan_catalog
from packages.billing.models.domain.enums import AiUsageContext
from packages.billing.models.domain.usage import AiUsageCreateModel, AiUsageRecord
from packages.billing.repositories.usage_repository import AiUsageRepository
from packages.billing.services.budget_evaluator import BudgetEvaluator
from packages.billing.services.usage_aggregator import UsageAggregator
from packages.notifications.models.domain.notifications import (
    QuotaExceededMessage,
    QuotaKind,
)
from packages.notifications.services.notification_publisher import (
    NotificationPublisher,
)
from packages.users.services.user_service import UserService

logger = get_logger(__name__)


class AiUsageService:
    """Writes AI usage records and flags the request that crosses the budget."""

    def __init__(
        self,
        catalog: Optional[PlanCatalog] = None,
        evaluator: Optional[BudgetEvaluator] = None,
        notifications: Optional[NotificationPublisher] = None,
    ):
        self.catalog = catalog or get_plan_catalog()
        self.usage_repo = AiUsageRepository()
        self.aggregator = UsageAggregator(ai_usage_repo=self.usage_repo)
        self.user_service = UserService()
        self.evaluator = evaluator or BudgetEvaluator(
            catalog=self.catalog,
            aggregator=self.aggregator,
            user_service=self.user_service,
        )
        self.notifications = notifications or NotificationPublisher()

    @trace_span
    async def record_usage(
        self,
        user_id: int,
        provider_id: str,
        input_tokens: int,
        output_tokens: int,
        context: AiUsageContext = AiUsageContext.CUSTOM,
        meeting_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> AiUsageRecord:
        """
        Record one AI request at its current price.

        The cost is fixed here and never recomputed. If this record moves the
        user from within budget to over budget, a quota notification is sent
        after the write commits.
        """
        now = now or utcnow()
        cost = calculate_request_cost(provider_id, input_tokens, output_tokens)

        async with transaction():
            user = await self.user_service.get_user_or_raise(user_id)
            plan = self.catalog.plan_for(user.current_plan)
            period = await self.evaluator.resolve_period(user_id, now)
            used_before = await self.aggregator.ai_cost_used(user_id, period)

            record = await self.usage_repo.create(
                AiUsageCreateModel(
                    user_id=user_id,
                    meeting_id=meeting_id,
                    provider_id=provider_id,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    cost_usd=cost,
                    context=context,
                    created_at=now,
                )
            )

        logger.info(
            f"Recorded AI usage {record.id} for user {user_id}: ${cost} via {provider_id}",
            extra={
                "user_id": user_id,
                "provider_id": provider_id,
                "cost_usd": str(cost),
                "context": context.value,
            },
        )

        max_spend = plan.max_ai_spend
        used_after = used_before + cost
        if used_before <= max_spend < used_after:
            await self._notify_budget_exceeded(user_id, plan.id, used_after, max_spend, now)

        return record

    async def _notify_budget_exceeded(
        self, user_id: int, plan_id, used: Decimal, limit: Decimal, now: datetime
    ) -> None:
        upgrade = self.catalog.upgrade_target(plan_id)
        await self.notifications.publish(
            QuotaExceededMessage(
                user_id=user_id,
                plan_id=plan_id,
                quota=QuotaKind.AI_BUDGET,
                used=used,
                limit=limit,
                upgrade_plan_id=upgrade.id if upgrade else None,
                occurred_at=now,
            )
        )

    @trace_span
    async def list_usage(
        self, user_id: int, limit: int = 100, offset: int = 0
    ) -> list[AiUsageRecord]:
        return await self.usage_repo.get_by_user(user_id, limit=limit, offset=offset)
