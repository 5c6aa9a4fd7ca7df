"""Database models for billing."""

from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.database.usage import AiUsageEntity

__all__ = [
    "SubscriptionEntity",
    "AiUsageEntity",
]
