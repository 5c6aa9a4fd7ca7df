"""
Factory for getting payment provider instance.
"""

from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.providers.payment.lemonsqueezy_payment import (
    LemonSqueezyPaymentProvider,
)


def get_payment_provider() -> PaymentProviderInterface:
    """Configured payment provider. Lemon Squeezy is the only one supported."""
    return LemonSqueezyPaymentProvider()
