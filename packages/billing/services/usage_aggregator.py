"""
Usage aggregation over a billing period.

Every call queries the store; nothing is cached, so a decision always sees
usage committed before it started.
"""

from decimal import Decimal
from typing import Optional

from common.core.otel_axiom_exporter import trace_span
from packages.billing.ai_costs import COST_QUANTUM
from packages.billing.models.domain.subscription import BillingPeriod
from packages.billing.repositories.usage_repository import AiUsageRepository
from packages.meetings.repositories.meeting_repository import MeetingRepository


class UsageAggregator:
    def __init__(
        self,
        meeting_repo: Optional[MeetingRepository] = None,
        ai_usage_repo: Optional[AiUsageRepository] = None,
    ):
        self.meeting_repo = meeting_repo or MeetingRepository()
        self.ai_usage_repo = ai_usage_repo or AiUsageRepository()

    @trace_span
    async def minutes_used(self, user_id: int, period: BillingPeriod) -> int:
        """Minutes of meetings closed within the period. Open meetings count 0."""
        return await self.meeting_repo.sum_minutes_for_period(
            user_id, period.start, period.end
        )

    @trace_span
    async def ai_cost_used(self, user_id: int, period: BillingPeriod) -> Decimal:
        total = await self.ai_usage_repo.get_cost_for_period(
            user_id, period.start, period.end
        )
        return total.quantize(COST_QUANTUM)

    @trace_span
    async def meeting_count(self, user_id: int, period: BillingPeriod) -> int:
        """Meetings started within the period."""
        return await self.meeting_repo.count_started_in_period(
            user_id, period.start, period.end
        )

    @trace_span
    async def has_open_meeting(self, user_id: int) -> bool:
        return await self.meeting_repo.has_open_meeting(user_id)
