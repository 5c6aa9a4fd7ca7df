"""
Billing API routes.

Protected endpoints for subscription, checkout and AI budget management.
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from common.core.otel_axiom_exporter import trace_span
from packages.auth.dependencies import get_current_user
from packages.auth.models.domain.authenticated_user import AuthenticatedUser
from packages.billing.ai_costs import estimate_request_cost
from packages.billing.catalog import PlanCatalog, get_plan_catalog
from packages.billing.models.domain.subscription import (
    CheckoutRequest,
    CheckoutResponse,
    Subscription,
    SubscriptionResponse,
)
from packages.billing.models.domain.usage import (
    AiAffordabilityRequest,
    AiBudgetDecision,
    AiUsageRecord,
    AiUsageRequest,
    UsageDecision,
)
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.billing.services.budget_evaluator import BudgetEvaluator
from packages.billing.services.usage_service import AiUsageService
from packages.users.services.user_service import UserService

router = APIRouter()


def get_budget_evaluator(
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> BudgetEvaluator:
    return BudgetEvaluator(catalog=catalog)


def get_ai_usage_service(
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> AiUsageService:
    return AiUsageService(catalog=catalog)


@router.get("/free-trial", response_model=UsageDecision)
@trace_span
async def get_free_trial_status(
    current_user: AuthenticatedUser = Depends(get_current_user),
    evaluator: BudgetEvaluator = Depends(get_budget_evaluator),
):
    """Whether the user may start a free-trial meeting now."""
    user = await evaluator.user_service.get_user_or_raise(current_user.user_id)
    return evaluator.can_start_free_trial(user)


@router.post("/ai/can-afford", response_model=AiBudgetDecision)
@trace_span
async def can_afford_ai_request(
    request: AiAffordabilityRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    evaluator: BudgetEvaluator = Depends(get_budget_evaluator),
):
    """
    Check the AI budget before making a request.

    Missing fields fall back to a typical request size on the default model.
    """
    overrides = {
        "provider_id": request.provider_id,
        "input_tokens": request.input_tokens,
        "output_tokens": request.output_tokens,
    }
    estimated_cost = estimate_request_cost(
        **{k: v for k, v in overrides.items() if v is not None}
    )
    return await evaluator.can_afford_ai_request(
        current_user.user_id,
        estimated_cost=estimated_cost,
        provider_id=request.provider_id,
    )


@router.post("/ai/usage", response_model=AiUsageRecord, status_code=201)
@trace_span
async def record_ai_usage(
    request: AiUsageRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    usage_service: AiUsageService = Depends(get_ai_usage_service),
):
    """Record a completed AI request. The cost is priced at the current rates."""
    return await usage_service.record_usage(
        user_id=current_user.user_id,
        provider_id=request.provider_id,
        input_tokens=request.input_tokens,
        output_tokens=request.output_tokens,
        context=request.context,
        meeting_id=request.meeting_id,
    )


@router.get("/ai/usage", response_model=List[AiUsageRecord])
@trace_span
async def list_ai_usage(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: AuthenticatedUser = Depends(get_current_user),
    usage_service: AiUsageService = Depends(get_ai_usage_service),
):
    return await usage_service.list_usage(
        current_user.user_id, limit=limit, offset=offset
    )


@router.post("/checkout", response_model=CheckoutResponse)
@trace_span
async def create_checkout(
    request: CheckoutRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    payment_provider: PaymentProviderInterface = Depends(get_payment_provider),
):
    """
    Create a hosted checkout for a paid plan.

    The plan change itself arrives later through the subscription webhook.
    """
    user = await UserService().get_user_or_raise(current_user.user_id)
    checkout_url = await payment_provider.create_checkout_url(
        user_id=user.id,
        email=user.email,
        plan_id=request.plan_id,
        billing_interval=request.billing_interval,
    )
    return CheckoutResponse(checkout_url=checkout_url)


@router.get("/subscription", response_model=SubscriptionResponse)
@trace_span
async def get_subscription(
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    user = await UserService().get_user_or_raise(current_user.user_id)
    subscription = await SubscriptionRepository().get_current_for_user(user.id)
    return SubscriptionResponse(plan_id=user.current_plan, subscription=subscription)


@router.get("/subscription/history", response_model=List[Subscription])
@trace_span
async def get_subscription_history(
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Every subscription the user has held, newest first."""
    return await SubscriptionRepository().list_for_user(current_user.user_id)
