"""
Domain models for subscriptions.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, field_validator

from packages.billing.models.domain.enums import (
    BillingEventOutcomeStatus,
    BillingInterval,
    PaymentProvider,
    PlanId,
    SubscriptionStatus,
)


class Subscription(BaseModel):
    """
    A user's subscription as last reported by the billing provider.

    ``renew_at`` is the anchor billing periods are aligned to.
    """

    id: int
    user_id: int
    provider: PaymentProvider = PaymentProvider.LEMONSQUEEZY
    provider_subscription_id: str
    plan_id: PlanId
    status: SubscriptionStatus
    billing_interval: BillingInterval = BillingInterval.MONTHLY
    renew_at: Optional[datetime] = None
    cancel_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    def is_current(self) -> bool:
        return self.status.is_current()


class SubscriptionCreateModel(BaseModel):
    """Model for creating a new subscription."""

    user_id: int
    provider: str = PaymentProvider.LEMONSQUEEZY.value
    provider_subscription_id: str
    plan_id: str
    status: str = SubscriptionStatus.ACTIVE.value
    billing_interval: str = BillingInterval.MONTHLY.value
    renew_at: Optional[datetime] = None
    cancel_at: Optional[datetime] = None

    @field_validator(
        "provider", "plan_id", "status", "billing_interval", mode="before"
    )
    @classmethod
    def validate_enum(cls, v):
        if isinstance(v, (PaymentProvider, PlanId, SubscriptionStatus, BillingInterval)):
            return v.value
        return v


class SubscriptionUpdateModel(BaseModel):
    """Model for updating a subscription. Only fields explicitly set are written."""

    plan_id: Optional[str] = None
    status: Optional[str] = None
    billing_interval: Optional[str] = None
    renew_at: Optional[datetime] = None
    cancel_at: Optional[datetime] = None

    @field_validator("plan_id", "status", "billing_interval", mode="before")
    @classmethod
    def validate_enum(cls, v):
        if isinstance(v, (PlanId, SubscriptionStatus, BillingInterval)):
            return v.value
        return v


class BillingPeriod(BaseModel):
    """Half-open interval [start, end)."""

    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


class BillingEventOutcome(BaseModel):
    """Result of applying one billing provider event."""

    status: BillingEventOutcomeStatus
    event_name: str
    provider_subscription_id: str
    subscription_id: Optional[int] = None
    user_id: Optional[int] = None
    plan_id: Optional[PlanId] = None
    subscription_status: Optional[SubscriptionStatus] = None
    reason: Optional[str] = None

    @classmethod
    def ignored(
        cls, event_name: str, provider_subscription_id: str, reason: str
    ) -> "BillingEventOutcome":
        return cls(
            status=BillingEventOutcomeStatus.IGNORED,
            event_name=event_name,
            provider_subscription_id=provider_subscription_id,
            reason=reason,
        )

    @classmethod
    def applied(cls, event_name: str, subscription: Subscription) -> "BillingEventOutcome":
        return cls(
            status=BillingEventOutcomeStatus.APPLIED,
            event_name=event_name,
            provider_subscription_id=subscription.provider_subscription_id,
            subscription_id=subscription.id,
            user_id=subscription.user_id,
            plan_id=subscription.plan_id,
            subscription_status=subscription.status,
        )


class CheckoutRequest(BaseModel):
    plan_id: PlanId
    billing_interval: BillingInterval = BillingInterval.MONTHLY


class CheckoutResponse(BaseModel):
    checkout_url: str


class SubscriptionResponse(BaseModel):
    """Current plan plus the subscription backing it, if any."""

    plan_id: PlanId
    subscription: Optional[Subscription] = None
