"""
Payment gateway adapters.

Exports the gateway contract and the Stripe implementation.
"""
from .base import PaymentGateway, to_minor_units
from .stripe_gateway import StripeGateway

__all__ = [
    "PaymentGateway",
    "StripeGateway",
    "to_minor_units",
]
