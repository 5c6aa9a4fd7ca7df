"""
Lemon Squeezy implementation of payment provider.
"""

from typing import Optional
import httpx

from common.core.config import settings
from common.core.exceptions import PaymentProviderError, ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.enums import BillingInterval, PlanId
from packages.billing.providers.payment.interface import PaymentProviderInterface

logger = get_logger(__name__)

JSON_API_CONTENT_TYPE = "application/vnd.api+json"


class LemonSqueezyPaymentProvider(PaymentProviderInterface):
    """Lemon Squeezy JSON:API client for checkouts."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 10.0,
    ):
        self._client = client
        self.timeout_seconds = timeout_seconds
        self.variant_ids = settings.variant_ids

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": JSON_API_CONTENT_TYPE,
            "Content-Type": JSON_API_CONTENT_TYPE,
            "Authorization": f"Bearer {settings.lemon_squeezy_api_key}",
        }

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        if not settings.lemon_squeezy_api_key:
            raise PaymentProviderError("Lemon Squeezy API key is not configured")

        url = f"{settings.lemon_squeezy_api_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.request(
                    method, url, headers=self._headers(), **kwargs
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.request(
                        method, url, headers=self._headers(), **kwargs
                    )
        except httpx.HTTPError as e:
            logger.error(f"Lemon Squeezy request {method} {path} failed: {e}")
            raise PaymentProviderError("Lemon Squeezy is unreachable") from e

        if response.status_code >= 400:
            logger.error(
                f"Lemon Squeezy API error: {response.status_code}",
                extra={"path": path, "status_code": response.status_code},
            )
            raise PaymentProviderError(
                f"Lemon Squeezy API error: {response.status_code}"
            )
        return response.json()

    def variant_for(self, plan_id: PlanId, billing_interval: BillingInterval) -> str:
        if plan_id == PlanId.FREE:
            raise ValidationError("Cannot create checkout for free plan")

        variant_id = self.variant_ids.get(f"{plan_id.value}_{billing_interval.value}")
        if not variant_id:
            raise ValidationError(
                f"Plan {plan_id.value} is not available with {billing_interval.value} billing"
            )
        return variant_id

    @trace_span
    async def create_checkout_url(
        self,
        user_id: int,
        email: str,
        plan_id: PlanId,
        billing_interval: BillingInterval,
    ) -> str:
        variant_id = self.variant_for(plan_id, billing_interval)
        if not settings.lemon_squeezy_store_id:
            raise PaymentProviderError("Lemon Squeezy store id is not configured")

        body = {
            "data": {
                "type": "checkouts",
                "attributes": {
                    "checkout_data": {
                        "email": email,
                        "custom": {"user_id": str(user_id)},
                    },
                },
                "relationships": {
                    "store": {
                        "data": {"type": "stores", "id": settings.lemon_squeezy_store_id}
                    },
                    "variant": {"data": {"type": "variants", "id": variant_id}},
                },
            }
        }

        checkout = await self._request("POST", "/checkouts", json=body)
        url = checkout.get("data", {}).get("attributes", {}).get("url")
        if not url:
            raise PaymentProviderError("Lemon Squeezy returned a checkout without a URL")

        logger.info(
            f"Created checkout for user {user_id}: {plan_id.value} {billing_interval.value}",
            extra={"user_id": user_id, "plan_id": plan_id.value},
        )
        return url

    async def health_check(self) -> bool:
        try:
            await self._request("GET", "/users/me")
            return True
        except PaymentProviderError:
            return False
