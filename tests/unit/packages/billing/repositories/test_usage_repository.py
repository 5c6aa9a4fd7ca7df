from datetime import datetime, timezone
from decimal import Decimal

from packages.billing.models.domain.enums import AiUsageContext
from packages.billing.models.domain.usage import AiUsageCreateModel
from packages.billing.repositories.usage_repository import AiUsageRepository

START = datetime(2025, 3, 1, tzinfo=timezone.utc)
END = datetime(2025, 4, 1, tzinfo=timezone.utc)


def usage(user_id: int, cost: str, created_at: datetime) -> AiUsageCreateModel:
    return AiUsageCreateModel(
        user_id=user_id,
        provider_id="gpt-4o-mini",
        input_tokens=1000,
        output_tokens=100,
        cost_usd=Decimal(cost),
        context=AiUsageContext.SUGGESTION,
        created_at=created_at,
    )


class TestAiUsageRepository:
    async def test_create_keeps_given_cost(self, free_user):
        record = await AiUsageRepository().create(
            usage(free_user.id, "0.000210", datetime(2025, 3, 2, tzinfo=timezone.utc))
        )

        assert record.cost_usd == Decimal("0.000210")
        assert record.context == AiUsageContext.SUGGESTION

    async def test_cost_for_period_is_half_open(self, free_user):
        repo = AiUsageRepository()
        await repo.create(usage(free_user.id, "1.25", START))
        await repo.create(usage(free_user.id, "2.00", END))

        assert await repo.get_cost_for_period(free_user.id, START, END) == Decimal("1.25")

    async def test_cost_for_empty_period(self, free_user):
        assert await AiUsageRepository().get_cost_for_period(
            free_user.id, START, END
        ) == Decimal("0")

    async def test_get_by_user_paginates_newest_first(self, free_user, plus_user):
        repo = AiUsageRepository()
        for day in (2, 3, 4):
            await repo.create(
                usage(free_user.id, "0.01", datetime(2025, 3, day, tzinfo=timezone.utc))
            )
        await repo.create(usage(plus_user.id, "0.01", START))

        page = await repo.get_by_user(free_user.id, limit=2, offset=1)

        assert [r.created_at.day for r in page] == [3, 2]
