"""
Plans API routes.

Public endpoint for retrieving available subscription plans.
"""

from fastapi import APIRouter, Depends

from packages.billing.catalog import PlanCatalog, get_plan_catalog
from packages.billing.services.plans_service import PlansService
from packages.billing.models.domain.plans import PlansResponse

router = APIRouter()


@router.get("/plans", response_model=PlansResponse)
async def get_plans(catalog: PlanCatalog = Depends(get_plan_catalog)):
    """
    Get all available subscription plans.

    Returns pricing, limits, and features for each plan.
    This endpoint is public (no auth required) for pricing pages.
    """
    return await PlansService(catalog).get_all_plans()
