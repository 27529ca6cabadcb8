"""
Payment DTOs (Pydantic v2) used at the provider boundary.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.types import condecimal

from shared.codes.payment_codes import SUPPORTED_CURRENCIES


class CheckoutLineItem(BaseModel):
    course_id: int
    name: str
    unit_amount: condecimal(ge=0)  # type: ignore[valid-type]
    description: Optional[str] = None


class CheckoutSessionRequest(BaseModel):
    order_id: int
    payment_id: int
    buyer_id: int
    amount: condecimal(gt=0)  # type: ignore[valid-type]
    currency: str = Field(default="EUR")
    line_items: list[CheckoutLineItem]
    success_url: str
    cancel_url: str
    customer_email: Optional[str] = None
    idempotency_key: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def _upper_and_validate_currency(cls, v: str) -> str:
        u = (v or "").upper()
        if len(u) != 3 or not u.isalpha():
            raise ValueError("currency must be ISO-4217 alpha-3")
        if u not in SUPPORTED_CURRENCIES:
            raise ValueError("unsupported currency")
        return u


class CheckoutSession(BaseModel):
    """Provider-side view of a hosted checkout session."""

    session_id: str
    provider: str
    url: Optional[str] = None
    status: Optional[str] = None            # open / complete / expired
    payment_status: Optional[str] = None    # paid / unpaid / no_payment_required
    payment_intent: Optional[str] = None
    amount_total: Optional[Decimal] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class WebhookEvent(BaseModel):
    id: str
    type: str
    provider: str
    data: dict[str, Any]
    # raw fields for traceability (optional)
    raw_headers: Optional[dict[str, Any]] = None
    raw_body: Optional[bytes] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def object(self) -> dict[str, Any]:
        return (self.data or {}).get("object") or {}
