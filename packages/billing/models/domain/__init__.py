"""Domain models for billing."""

from packages.billing.models.domain.enums import (
    AiUsageContext,
    BillingEventName,
    BillingEventOutcomeStatus,
    BillingInterval,
    PaymentProvider,
    PlanId,
    SubscriptionStatus,
)
from packages.billing.models.domain.plans import PlanConfig, PlanInfo, PlansResponse
from packages.billing.models.domain.subscription import (
    BillingEventOutcome,
    BillingPeriod,
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.billing.models.domain.usage import (
    AiBudgetDecision,
    AiUsageCreateModel,
    AiUsageRecord,
    UsageDecision,
    UsageStats,
)

__all__ = [
    # Enums
    "AiUsageContext",
    "BillingEventName",
    "BillingEventOutcomeStatus",
    "BillingInterval",
    "PaymentProvider",
    "PlanId",
    "SubscriptionStatus",
    # Plans
    "PlanConfig",
    "PlanInfo",
    "PlansResponse",
    # Subscription
    "BillingEventOutcome",
    "BillingPeriod",
    "Subscription",
    "SubscriptionCreateModel",
    "SubscriptionUpdateModel",
    # Usage
    "AiBudgetDecision",
    "AiUsageCreateModel",
    "AiUsageRecord",
    "UsageDecision",
    "UsageStats",
]
