"""
Payment settings: provider credentials, checkout defaults and fulfillment knobs.

Loaded with pydantic-settings using nested env keys (STRIPE__SECRET_KEY,
PAYMENT__CURRENCY, ...). Kept apart from core.config.Settings so the payment
configuration can be validated on its own at process start.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator

from shared.codes.payment_codes import SUPPORTED_CURRENCIES


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    # whole provider call, retries excluded
    total: float = 5.0


class PaymentRetry(BaseModel):
    # extra attempts for transient provider failures
    max: int = Field(default=2, ge=0)
    base_backoff: float = Field(default=0.2, ge=0)


class WebhookSettings(BaseModel):
    # Stripe rejects signatures older than this
    tolerance_seconds: int = Field(default=300, gt=0)


class StripeSettings(BaseModel):
    secret_key: Optional[str] = None
    webhook_secret: Optional[str] = None


class CheckoutSettings(BaseModel):
    """Fallback redirect targets when the buyer's request carries none."""
    success_url: str = "http://localhost:3000/checkout/success"
    cancel_url: str = "http://localhost:3000/checkout/cancel"


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="stripe", validation_alias="PAYMENT__DEFAULT_PROVIDER")
    currency: str = Field(default="eur", validation_alias="PAYMENT__CURRENCY")
    invoice_due_days: int = Field(default=30, ge=0, validation_alias="PAYMENT__INVOICE_DUE_DAYS")
    # Simulated/manual card entry; disable in production deployments
    direct_payments_enabled: bool = Field(default=True, validation_alias="PAYMENT__DIRECT_ENABLED")

    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    checkout: CheckoutSettings = Field(default_factory=CheckoutSettings)
    stripe: StripeSettings = Field(default_factory=StripeSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("currency")
    @classmethod
    def _alpha3(cls, v: str) -> str:
        if len(v) != 3 or not v.isalpha():
            raise ValueError("PAYMENT__CURRENCY must be an ISO-4217 alpha-3 code")
        if v.upper() not in SUPPORTED_CURRENCIES:
            raise ValueError(f"PAYMENT__CURRENCY {v!r} is not a supported checkout currency")
        return v.lower()

    @field_validator("default_provider")
    @classmethod
    def _lower_provider(cls, v: str) -> str:
        return v.strip().lower()


payment_settings = PaymentSettings()
