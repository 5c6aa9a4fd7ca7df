"""
Lemon Squeezy webhook handler.

Verifies the X-Signature HMAC of the raw body, parses the event and hands it
to the subscription state machine. Any response other than 2xx makes Lemon
Squeezy retry, which is safe because event application is idempotent.
"""

import hashlib
import hmac

from fastapi import Request, HTTPException, status
from pydantic import ValidationError

from common.core.config import settings
from common.core.exceptions import TransientStoreError
from common.core.otel_axiom_exporter import get_logger
from packages.billing.models.domain.lemonsqueezy_webhooks import LemonSqueezyWebhookEvent
from packages.billing.services.subscription_state_machine import (
    SubscriptionStateMachine,
)

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Signature"


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Constant-time check of a hex HMAC-SHA256 over the raw body."""
    if not secret or not signature:
        return False
    return hmac.compare_digest(compute_signature(body, secret), signature.strip())


async def handle_lemonsqueezy_webhook(
    request: Request, state_machine: SubscriptionStateMachine
) -> dict[str, str]:
    body = await request.body()

    if not settings.lemon_squeezy_webhook_secret:
        logger.error("Lemon Squeezy webhook secret is not configured")
    if not verify_signature(
        body,
        request.headers.get(SIGNATURE_HEADER),
        settings.lemon_squeezy_webhook_secret,
    ):
        logger.warning("Rejected Lemon Squeezy webhook with invalid signature")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature"
        )

    try:
        event = LemonSqueezyWebhookEvent.model_validate_json(body)
    except ValidationError as e:
        logger.error(
            "Invalid Lemon Squeezy webhook payload",
            extra={"validation_errors": str(e.errors())},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload"
        )

    logger.info(
        f"Received Lemon Squeezy webhook: {event.event_name}",
        extra={
            "event_name": event.event_name,
            "provider_subscription_id": event.provider_subscription_id,
        },
    )

    try:
        outcome = await state_machine.apply_billing_event(
            event.event_name, event.provider_subscription_id, event.payload
        )
    except TransientStoreError as e:
        logger.warning(f"Transient failure applying webhook, provider will retry: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Temporarily unavailable",
            headers={"Retry-After": "5"},
        )
    except Exception as e:
        logger.error(
            f"Failed to process Lemon Squeezy webhook: {e}",
            exc_info=True,
            extra={"event_name": event.event_name},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    return {"status": outcome.status.value, "event": event.event_name}
