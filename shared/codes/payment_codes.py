"""
Payment provider and fulfillment codes, plus the Stripe event vocabulary the
webhook processor understands.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Provider (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002
    PROVIDER_NOT_CONFIGURED = 60004

    # Fulfillment and refunds (7xxxx)
    FULFILLMENT_FAILED = 70000
    REFUND_OUT_OF_ORDER = 70001


# Stripe Checkout `payment_status` values that count as a settled charge
PAID_SESSION_STATUSES = frozenset({"paid", "no_payment_required"})

EVENT_CHECKOUT_COMPLETED = "checkout.session.completed"
EVENT_CHARGE_REFUNDED = "charge.refunded"

# Checkout currencies accepted by both the settings layer and the provider DTOs
SUPPORTED_CURRENCIES = frozenset({"USD", "EUR", "GBP", "CHF", "JPY", "AUD", "CAD", "SGD"})
