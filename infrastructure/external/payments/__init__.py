"""
Factory for payment provider clients.
"""
from __future__ import annotations

from typing import Optional

from core.settings import payment_settings
from application.ports.payment_provider import PaymentProvider


def build_payment_provider(provider: Optional[str] = None) -> PaymentProvider:
    """Construct once at process start; the instance is safe to share."""
    name = (provider or payment_settings.default_provider).lower()
    if name == "stripe":
        from .stripe_client import StripeCheckoutClient
        return StripeCheckoutClient()
    raise ValueError(f"Unsupported payment provider: {name}")
