"""Domain models for billing plans."""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict

from packages.billing.models.domain.enums import PlanId


class PlanConfig(BaseModel):
    """
    Quota and budget parameters of one plan.

    Immutable: the catalog is built once at startup and shared read-only.
    """

    model_config = ConfigDict(frozen=True)

    id: PlanId
    name: str
    monthly_revenue: Decimal
    yearly_revenue: Decimal
    max_minutes_per_month: Optional[int] = None  # None means unlimited
    max_minutes_per_meeting: int
    max_meetings_per_rolling_week: Optional[int] = None  # free tier only
    ai_budget_factor: Decimal = Decimal("0.5")
    fixed_ai_allowance_usd: Decimal = Decimal("0")
    features: tuple[str, ...] = ()

    @property
    def max_ai_spend(self) -> Decimal:
        """Maximum AI spend per billing period, in USD."""
        return self.monthly_revenue * self.ai_budget_factor + self.fixed_ai_allowance_usd


class PlanInfo(BaseModel):
    """Public plan information for the pricing page."""

    id: PlanId
    name: str
    monthly_price: Decimal
    yearly_price: Decimal
    max_minutes_per_month: Optional[int] = None
    max_minutes_per_meeting: int
    max_meetings_per_week: Optional[int] = None
    features: list[str]


class PlansResponse(BaseModel):
    """Response model for plans endpoint."""

    plans: list[PlanInfo]
