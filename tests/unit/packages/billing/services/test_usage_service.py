from datetime import datetime, timezone
from decimal import Decimal

import pytest

from common.core.exceptions import NotFoundError
from packages.billing.catalog import build_default_catalog
from packages.billing.models.domain.enums import AiUsageContext
from packages.billing.models.domain.subscription import BillingPeriod
from packages.billing.services.usage_aggregator import UsageAggregator
from packages.billing.services.usage_service import AiUsageService
from packages.notifications.services.notification_publisher import (
    NotificationPublisher,
)

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)
MARCH = BillingPeriod(
    start=datetime(2025, 3, 1, tzinfo=timezone.utc),
    end=datetime(2025, 4, 1, tzinfo=timezone.utc),
)
APRIL = BillingPeriod(
    start=datetime(2025, 4, 1, tzinfo=timezone.utc),
    end=datetime(2025, 5, 1, tzinfo=timezone.utc),
)
FEBRUARY = BillingPeriod(
    start=datetime(2025, 2, 1, tzinfo=timezone.utc),
    end=datetime(2025, 3, 1, tzinfo=timezone.utc),
)


@pytest.fixture
def usage_service(mock_message_queue):
    return AiUsageService(
        catalog=build_default_catalog(),
        notifications=NotificationPublisher(message_queue=mock_message_queue),
    )


class TestRecordUsage:
    async def test_cost_fixed_at_insert(self, usage_service, plus_user):
        record = await usage_service.record_usage(
            plus_user.id,
            "claude-sonnet-4",
            input_tokens=1234,
            output_tokens=567,
            context=AiUsageContext.RECAP,
            now=NOW,
        )

        assert record.cost_usd == Decimal("0.012207")
        assert record.context == AiUsageContext.RECAP
        assert record.created_at == NOW

    async def test_record_raises_cost_by_exactly_its_amount(self, usage_service, plus_user):
        aggregator = UsageAggregator()
        before = {
            name: await aggregator.ai_cost_used(plus_user.id, period)
            for name, period in (("feb", FEBRUARY), ("mar", MARCH), ("apr", APRIL))
        }

        record = await usage_service.record_usage(
            plus_user.id, "gpt-4o", input_tokens=20_000, output_tokens=2_000, now=NOW
        )

        assert await aggregator.ai_cost_used(plus_user.id, MARCH) == before["mar"] + record.cost_usd
        assert await aggregator.ai_cost_used(plus_user.id, FEBRUARY) == before["feb"]
        assert await aggregator.ai_cost_used(plus_user.id, APRIL) == before["apr"]

    async def test_unknown_provider_records_zero(self, usage_service, plus_user):
        record = await usage_service.record_usage(
            plus_user.id, "homegrown-llm", input_tokens=100, output_tokens=100, now=NOW
        )

        assert record.cost_usd == Decimal("0")

    async def test_unknown_user_raises(self, usage_service):
        with pytest.raises(NotFoundError):
            await usage_service.record_usage(777, "deepseek-chat", 10, 10, now=NOW)

    async def test_list_usage_newest_first(self, usage_service, plus_user):
        await usage_service.record_usage(plus_user.id, "deepseek-chat", 10, 10, now=NOW)
        await usage_service.record_usage(
            plus_user.id, "gpt-4o-mini", 10, 10, now=datetime(2025, 3, 16, tzinfo=timezone.utc)
        )

        records = await usage_service.list_usage(plus_user.id)

        assert [r.provider_id for r in records] == ["gpt-4o-mini", "deepseek-chat"]


class TestBudgetNotification:
    async def test_crossing_budget_notifies_once(
        self, usage_service, plus_user, mock_message_queue
    ):
        # Each claude request of 100k in / 10k out costs $0.45; budget is $4.50
        for _ in range(10):
            await usage_service.record_usage(
                plus_user.id, "claude-sonnet-4", 100_000, 10_000, now=NOW
            )
        mock_message_queue.publish.assert_not_called()

        await usage_service.record_usage(
            plus_user.id, "claude-sonnet-4", 100_000, 10_000, now=NOW
        )
        await usage_service.record_usage(
            plus_user.id, "claude-sonnet-4", 100_000, 10_000, now=NOW
        )

        mock_message_queue.publish.assert_called_once()
        queue_name, body = mock_message_queue.publish.call_args.args
        assert queue_name == "billing_notifications"
        assert body["kind"] == "quota_exceeded"
        assert body["quota"] == "ai_budget"
        assert Decimal(body["used"]) == Decimal("4.95")
        assert body["upgrade_plan_id"] == "ultra"
