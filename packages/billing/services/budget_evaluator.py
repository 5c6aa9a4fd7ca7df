"""
Quota and budget evaluation.

Every gate returns a UsageDecision; a policy denial is a value with a
user-facing reason and suggestions, never an exception. Exceptions are kept
for missing users, misconfiguration and store failures.
"""

import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.base import utcnow
from packages.billing.ai_costs import cheaper_alternative, estimate_request_cost
from packages.billing.catalog import PlanCatalog, get_plan_catalog
from packages.billing.models.domain.enums import PlanId
from packages.billing.models.domain.plans import PlanConfig
from packages.billing.models.domain.subscription import BillingPeriod
from packages.billing.models.domain.usage import (
    AiBudgetDecision,
    UsageDecision,
    UsageStats,
)
from packages.billing.periods import current_period
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.services.usage_aggregator import UsageAggregator
from packages.users.models.domain.user import User
from packages.users.services.user_service import UserService

logger = get_logger(__name__)

FREE_TRIAL_WINDOW = timedelta(days=7)


def budget_percent(used: Decimal, budget: Decimal) -> float:
    """Share of the budget used, capped at 100. A zero budget reports 0."""
    if budget <= 0:
        return 0.0
    return float(min(Decimal(100), used / budget * 100))


class BudgetEvaluator:
    def __init__(
        self,
        catalog: Optional[PlanCatalog] = None,
        aggregator: Optional[UsageAggregator] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        user_service: Optional[UserService] = None,
    ):
        self.catalog = catalog or get_plan_catalog()
        self.aggregator = aggregator or UsageAggregator()
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.user_service = user_service or UserService()

    async def resolve_period(self, user_id: int, now: datetime) -> BillingPeriod:
        subscription = await self.subscription_repo.get_current_for_user(user_id)
        return current_period(subscription, now)

    def _upgrade_name(self, plan_id: PlanId) -> Optional[str]:
        target = self.catalog.upgrade_target(plan_id)
        return target.name if target else None

    def can_start_free_trial(
        self, user: User, now: Optional[datetime] = None
    ) -> UsageDecision:
        """Free users get one meeting per rolling seven days; paid users always pass."""
        if not user.is_free:
            return UsageDecision.allow()

        now = now or utcnow()
        last_started = user.last_free_trial_started_at
        if last_started is None or now - last_started >= FREE_TRIAL_WINDOW:
            return UsageDecision.allow()

        remaining = FREE_TRIAL_WINDOW - (now - last_started)
        days_left = math.ceil(remaining / timedelta(days=1))
        upgrade = self._upgrade_name(PlanId.FREE) or "a paid plan"
        return UsageDecision.deny(
            "Free trial is limited to 1 meeting per week. "
            f"You can start another trial in {days_left} day(s).",
            [
                f"Upgrade to {upgrade} for unlimited meetings",
                "Wait for your trial week to reset",
            ],
        )

    def _check_meeting_length(
        self, plan: PlanConfig, estimated_minutes: int
    ) -> UsageDecision:
        limit = plan.max_minutes_per_meeting
        if estimated_minutes <= limit:
            return UsageDecision.allow()

        upgrade = self._upgrade_name(plan.id) or "a paid plan"
        return UsageDecision.deny(
            f"Free trial meetings are limited to {limit} minutes. "
            f"Your estimated duration is {estimated_minutes} minutes.",
            [
                f"Keep your meeting under {limit} minutes",
                f"Upgrade to {upgrade} for longer meetings",
            ],
        )

    async def _check_monthly_minutes(
        self, user_id: int, plan: PlanConfig, estimated_minutes: int, now: datetime
    ) -> UsageDecision:
        limit = plan.max_minutes_per_month
        if limit is None:
            return UsageDecision.allow()

        period = await self.resolve_period(user_id, now)
        used = await self.aggregator.minutes_used(user_id, period)
        if used + estimated_minutes <= limit:
            return UsageDecision.allow()

        suggestions = ["Wait for your billing period to reset"]
        upgrade = self._upgrade_name(plan.id)
        if upgrade:
            suggestions.append(f"Upgrade to {upgrade} for more minutes")

        logger.info(
            f"Denied meeting start for user {user_id}: monthly minutes exhausted",
            extra={"user_id": user_id, "used": used, "limit": limit},
        )
        return UsageDecision.deny(
            f"You've used {used} of {limit} minutes this month. "
            "This meeting would exceed your limit.",
            suggestions,
        )

    @trace_span
    async def can_start_meeting(
        self,
        user_id: int,
        estimated_minutes: int = 30,
        now: Optional[datetime] = None,
    ) -> UsageDecision:
        now = now or utcnow()

        if await self.aggregator.has_open_meeting(user_id):
            return UsageDecision.deny(
                "You already have an active meeting. "
                "Please end it before starting a new one."
            )

        user = await self.user_service.get_user_or_raise(user_id)
        plan = self.catalog.plan_for(user.current_plan)

        if user.is_free:
            trial = self.can_start_free_trial(user, now)
            if not trial.allowed:
                return trial
            length = self._check_meeting_length(plan, estimated_minutes)
            if not length.allowed:
                return length

        return await self._check_monthly_minutes(user_id, plan, estimated_minutes, now)

    @trace_span
    async def can_afford_ai_request(
        self,
        user_id: int,
        estimated_cost: Optional[Decimal] = None,
        now: Optional[datetime] = None,
        provider_id: Optional[str] = None,
    ) -> AiBudgetDecision:
        """
        Whether the next AI request fits in the period budget.

        When ``provider_id`` is given, a denial suggests a cheaper model.
        """
        now = now or utcnow()
        if estimated_cost is None:
            estimated_cost = estimate_request_cost()

        user = await self.user_service.get_user_or_raise(user_id)
        plan = self.catalog.plan_for(user.current_plan)
        max_spend = plan.max_ai_spend

        period = await self.resolve_period(user_id, now)
        used = await self.aggregator.ai_cost_used(user_id, period)
        percent = budget_percent(used, max_spend)

        figures = dict(
            current_spend=used,
            max_spend=max_spend,
            estimated_cost=estimated_cost,
            budget_usage_percent=round(percent, 2),
            warning=percent >= settings.ai_budget_warning_percent,
        )

        if used + estimated_cost <= max_spend:
            return AiBudgetDecision(allowed=True, **figures)

        suggestions = []
        upgrade = self._upgrade_name(plan.id)
        if upgrade:
            suggestions.append(f"Upgrade to {upgrade} for a larger AI budget")
        alternative = cheaper_alternative(provider_id) if provider_id else None
        if alternative:
            suggestions.append(f"Switch to {alternative} for lower cost")

        logger.info(
            f"Denied AI request for user {user_id}: budget exhausted",
            extra={
                "user_id": user_id,
                "used": str(used),
                "max_spend": str(max_spend),
                "estimated_cost": str(estimated_cost),
            },
        )
        return AiBudgetDecision(
            allowed=False,
            reason=(
                f"AI budget exceeded. You've used ${used:.2f} of ${max_spend:.2f} "
                "this billing period. Upgrade your plan to continue using AI features."
            ),
            suggestions=suggestions,
            **figures,
        )

    @trace_span
    async def get_complete_usage_stats(
        self, user_id: int, now: Optional[datetime] = None
    ) -> UsageStats:
        now = now or utcnow()

        user = await self.user_service.get_user_or_raise(user_id)
        plan = self.catalog.plan_for(user.current_plan)
        period = await self.resolve_period(user_id, now)

        minutes_used = await self.aggregator.minutes_used(user_id, period)
        meetings = await self.aggregator.meeting_count(user_id, period)
        has_active = await self.aggregator.has_open_meeting(user_id)
        ai_cost = await self.aggregator.ai_cost_used(user_id, period)
        budget = plan.max_ai_spend

        return UsageStats(
            plan_id=plan.id,
            period_start=period.start,
            period_end=period.end,
            minutes_used=minutes_used,
            minutes_limit=plan.max_minutes_per_month,
            max_minutes_per_meeting=plan.max_minutes_per_meeting,
            meetings_this_period=meetings,
            max_meetings_per_week=plan.max_meetings_per_rolling_week,
            has_active_meeting=has_active,
            ai_cost_this_period=ai_cost,
            ai_budget=budget,
            remaining_budget=max(Decimal("0"), budget - ai_cost),
            budget_usage_percent=round(budget_percent(ai_cost, budget), 2),
        )
