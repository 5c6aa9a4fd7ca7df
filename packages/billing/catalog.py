"""
Plan catalog.

Built once at process start and passed explicitly to the components that
need it. Tests construct their own PlanCatalog with whatever plans they need.
"""

from decimal import Decimal
from functools import lru_cache
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from common.core.config import Settings, settings as default_settings
from common.core.exceptions import UnknownPlanError
from common.core.otel_axiom_exporter import get_logger
from packages.billing.models.domain.enums import PlanId
from packages.billing.models.domain.plans import PlanConfig

logger = get_logger(__name__)


class PlanCatalog:
    """Read-only lookup from plan id to PlanConfig."""

    def __init__(self, plans: Iterable[PlanConfig]):
        by_id = {}
        for plan in plans:
            by_id[plan.id.value] = plan
        self._plans: Mapping[str, PlanConfig] = MappingProxyType(by_id)

    def plan_for(self, plan_id: PlanId | str) -> PlanConfig:
        key = plan_id.value if isinstance(plan_id, PlanId) else plan_id
        plan = self._plans.get(key)
        if plan is None:
            raise UnknownPlanError(key)
        return plan

    def all_plans(self) -> list[PlanConfig]:
        """Plans ordered cheapest first."""
        return sorted(self._plans.values(), key=lambda p: p.monthly_revenue)

    def upgrade_target(self, plan_id: PlanId | str) -> Optional[PlanConfig]:
        """Next plan up by revenue, or None for the top plan."""
        current = self.plan_for(plan_id)
        for plan in self.all_plans():
            if plan.monthly_revenue > current.monthly_revenue:
                return plan
        return None

    def validate(self) -> None:
        """
        Fail fast on a misconfigured catalog.

        Every PlanId must be registered; a plan referenced by stored
        subscriptions but missing here would otherwise fail at request time.
        """
        for plan_id in PlanId:
            self.plan_for(plan_id)
        for plan in self._plans.values():
            if plan.max_minutes_per_meeting <= 0:
                raise ValueError(f"Plan {plan.id.value} has no per-meeting limit")
        logger.info(
            f"Plan catalog validated: {[p.id.value for p in self.all_plans()]}"
        )


def build_default_catalog(config: Settings = default_settings) -> PlanCatalog:
    factor = config.ai_budget_factor
    return PlanCatalog(
        [
            PlanConfig(
                id=PlanId.FREE,
                name="Halo Free",
                monthly_revenue=Decimal("0"),
                yearly_revenue=Decimal("0"),
                max_minutes_per_meeting=20,
                max_meetings_per_rolling_week=1,
                ai_budget_factor=factor,
                fixed_ai_allowance_usd=config.free_tier_ai_allowance_usd,
                features=(
                    "1 meeting per week",
                    "20 minutes per meeting",
                    "DeepSeek Chat suggestions",
                ),
            ),
            PlanConfig(
                id=PlanId.PLUS,
                name="Halo Plus",
                monthly_revenue=Decimal("9"),
                yearly_revenue=Decimal("90"),
                max_minutes_per_month=1000,
                max_minutes_per_meeting=90,
                ai_budget_factor=factor,
                features=(
                    "1,000 minutes per month",
                    "90 minutes per meeting",
                    "DeepSeek Reasoner suggestions",
                    "Meeting recaps",
                ),
            ),
            PlanConfig(
                id=PlanId.ULTRA,
                name="Halo Ultra",
                monthly_revenue=Decimal("19"),
                yearly_revenue=Decimal("190"),
                max_minutes_per_month=3000,
                max_minutes_per_meeting=120,
                ai_budget_factor=factor,
                features=(
                    "3,000 minutes per month",
                    "120 minutes per meeting",
                    "Claude Sonnet suggestions",
                    "Meeting recaps",
                    "Fact checking",
                ),
            ),
        ]
    )


@lru_cache(maxsize=1)
def get_plan_catalog() -> PlanCatalog:
    """Process-wide catalog provider (FastAPI dependency and service default)."""
    return build_default_catalog()
