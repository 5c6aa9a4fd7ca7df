"""
Billing enums - strongly typed enumerations for plans, subscriptions and usage.
"""

from enum import Enum


class PlanId(str, Enum):
    """Registered subscription plans, cheapest first."""

    FREE = "free"
    PLUS = "plus"
    ULTRA = "ultra"


class BillingInterval(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    """
    Subscription status lifecycle.

    Driven exclusively by billing provider events.
    """

    NONE = "none"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"  # Payment failed, access continues until cancel/expire
    PAUSED = "paused"
    CANCELED = "canceled"
    EXPIRED = "expired"

    def is_current(self) -> bool:
        """Whether a subscription in this status defines the user's billing period."""
        return self in (
            SubscriptionStatus.TRIALING,
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAST_DUE,
            SubscriptionStatus.PAUSED,
        )


class PaymentProvider(str, Enum):
    """Supported payment providers."""

    LEMONSQUEEZY = "lemonsqueezy"
    MANUAL = "manual"


class AiUsageContext(str, Enum):
    """What an AI request was made for."""

    TRANSCRIPTION = "transcription"
    SUGGESTION = "suggestion"
    RECAP = "recap"
    FACT_CHECK = "fact-check"
    CUSTOM = "custom"


class BillingEventName(str, Enum):
    """Lemon Squeezy subscription webhook events we apply."""

    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_RESUMED = "subscription_resumed"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    SUBSCRIPTION_PAUSED = "subscription_paused"
    SUBSCRIPTION_UNPAUSED = "subscription_unpaused"
    SUBSCRIPTION_PAYMENT_SUCCESS = "subscription_payment_success"
    SUBSCRIPTION_PAYMENT_FAILED = "subscription_payment_failed"


class BillingEventOutcomeStatus(str, Enum):
    APPLIED = "applied"
    IGNORED = "ignored"
