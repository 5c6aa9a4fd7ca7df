"""
Webhook endpoints for billing events.

Public endpoints (no auth required); the signature is validated internally.
"""

from fastapi import APIRouter, Depends, Request

from common.providers.rate_limiter.limiter import limiter
from packages.billing.services.subscription_state_machine import (
    SubscriptionStateMachine,
)
from packages.billing.webhooks.lemonsqueezy_webhook import handle_lemonsqueezy_webhook

router = APIRouter()


def get_subscription_state_machine() -> SubscriptionStateMachine:
    return SubscriptionStateMachine()


@router.post("/webhooks/lemonsqueezy")
@limiter.limit("120/minute")
async def lemonsqueezy_webhook(
    request: Request,
    state_machine: SubscriptionStateMachine = Depends(get_subscription_state_machine),
) -> dict[str, str]:
    """Receive subscription events from Lemon Squeezy."""
    return await handle_lemonsqueezy_webhook(request, state_machine)
