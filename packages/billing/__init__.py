"""
Billing package - plans, billing periods, usage budgets and subscriptions.

This package integrates with:
- Lemon Squeezy: checkout and subscription lifecycle webhooks

Meeting minutes and AI spend are metered locally against the plan catalog.
"""
