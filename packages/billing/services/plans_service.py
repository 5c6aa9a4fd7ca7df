"""Service for retrieving billing plan information."""

from typing import Optional

from common.core.otel_axiom_exporter import trace_span
from packages.billing.catalog import PlanCatalog, get_plan_catalog
from packages.billing.models.domain.plans import PlanConfig, PlanInfo, PlansResponse


class PlansService:
    """Public view of the plan catalog for the pricing page."""

    def __init__(self, catalog: Optional[PlanCatalog] = None):
        self.catalog = catalog or get_plan_catalog()

    @trace_span
    async def get_all_plans(self) -> PlansResponse:
        return PlansResponse(
            plans=[self._build_plan_info(plan) for plan in self.catalog.all_plans()]
        )

    def _build_plan_info(self, plan: PlanConfig) -> PlanInfo:
        return PlanInfo(
            id=plan.id,
            name=plan.name,
            monthly_price=plan.monthly_revenue,
            yearly_price=plan.yearly_revenue,
            max_minutes_per_month=plan.max_minutes_per_month,
            max_minutes_per_meeting=plan.max_minutes_per_meeting,
            max_meetings_per_week=plan.max_meetings_per_rolling_week,
            features=list(plan.features),
        )
