"""Billing services."""

from packages.billing.services.budget_evaluator import BudgetEvaluator
from packages.billing.services.plans_service import PlansService
from packages.billing.services.subscription_state_machine import (
    SubscriptionStateMachine,
)
from packages.billing.services.usage_aggregator import UsageAggregator
from packages.billing.services.usage_service import AiUsageService

__all__ = [
    "AiUsageService",
    "BudgetEvaluator",
    "PlansService",
    "SubscriptionStateMachine",
    "UsageAggregator",
]
