"""
Interface for payment providers.

Keeps checkout creation independent of the billing platform.
"""

from abc import ABC, abstractmethod
from packages.billing.models.domain.enums import BillingInterval, PlanId


class PaymentProviderInterface(ABC):
    """Abstract interface for payment providers."""

    @abstractmethod
    async def create_checkout_url(
        self,
        user_id: int,
        email: str,
        plan_id: PlanId,
        billing_interval: BillingInterval,
    ) -> str:
        """
        Create a hosted checkout for a paid plan.

        The user id travels in the checkout's custom data and comes back on
        the subscription webhooks.

        Raises:
            ValidationError: the plan cannot be purchased (free, or no variant configured)
            PaymentProviderError: the provider API failed
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass
