"""
Stripe Checkout adapter using the official stripe-python SDK.

- Sessions are created with per-request `api_key` so no module-level key is
  ever mutated; the idempotency key is passed through as `idempotency_key`.
- Webhooks are verified with `stripe.Webhook.construct_event` against the
  `Stripe-Signature` header before any payload field is trusted.
"""
from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Callable, Optional, TypeVar

import stripe

from application.dtos.payments import (
    CheckoutSession,
    CheckoutSessionRequest,
    WebhookEvent,
)
from infrastructure.external.payments.base import BasePaymentClient
from domain.payment.exceptions import (
    PaymentProviderError,
    PaymentProviderNotConfiguredError,
    PaymentRecoverableError,
    PaymentSignatureError,
)
from core.settings import payment_settings
from core.logging_config import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW"}


class StripeCheckoutClient(BasePaymentClient):
    provider = "stripe"

    def __init__(self, *, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        super().__init__(
            timeouts=payment_settings.timeouts.model_dump(),
            retry={"max": payment_settings.retry.max, "base": payment_settings.retry.base_backoff},
        )
        self._secret_key = secret_key or payment_settings.stripe.secret_key
        self._webhook_secret = webhook_secret or payment_settings.stripe.webhook_secret
        if not self._secret_key:
            raise PaymentProviderNotConfiguredError(self.provider)

    @staticmethod
    def _to_minor(amount: Decimal, currency: str) -> int:
        # Stripe expects amounts in the smallest currency unit
        exponent = 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2
        return int((amount * (Decimal(10) ** exponent)).to_integral_value())

    @staticmethod
    def _from_minor(amount: Optional[int], currency: Optional[str]) -> Optional[Decimal]:
        if amount is None:
            return None
        exponent = 0 if (currency or "").upper() in ZERO_DECIMAL_CURRENCIES else 2
        return Decimal(amount) / (Decimal(10) ** exponent)

    async def _call(self, fn: Callable[[], T]) -> T:
        try:
            return await self._run_blocking(fn)
        except (stripe.APIConnectionError, stripe.RateLimitError) as exc:
            raise PaymentRecoverableError(
                str(exc.user_message or exc), provider=self.provider, provider_code=exc.code
            ) from exc
        except stripe.StripeError as exc:
            raise PaymentProviderError(
                str(exc.user_message or exc), provider=self.provider, provider_code=exc.code
            ) from exc

    def _to_session(self, obj: Any) -> CheckoutSession:
        intent = obj.get("payment_intent")
        if intent is not None and not isinstance(intent, str):
            intent = intent.get("id")
        return CheckoutSession(
            session_id=str(obj.get("id")),
            provider=self.provider,
            url=obj.get("url"),
            status=obj.get("status"),
            payment_status=obj.get("payment_status"),
            payment_intent=intent,
            amount_total=self._from_minor(obj.get("amount_total"), obj.get("currency")),
            metadata=dict(obj.get("metadata") or {}),
        )

    def _session_params(self, req: CheckoutSessionRequest) -> dict[str, Any]:
        currency = req.currency.lower()
        refs = {
            "order_id": str(req.order_id),
            "payment_id": str(req.payment_id),
            "buyer_id": str(req.buyer_id),
        }
        line_items = []
        for item in req.line_items:
            product: dict[str, Any] = {"name": item.name, "metadata": {"course_id": str(item.course_id)}}
            if item.description:
                product["description"] = item.description
            line_items.append({
                "price_data": {
                    "currency": currency,
                    "unit_amount": self._to_minor(item.unit_amount, req.currency),
                    "product_data": product,
                },
                "quantity": 1,
            })
        params: dict[str, Any] = {
            "mode": "payment",
            "line_items": line_items,
            "success_url": req.success_url,
            "cancel_url": req.cancel_url,
            "client_reference_id": str(req.order_id),
            "metadata": {**req.metadata, **refs},
            "payment_intent_data": {"metadata": refs},
        }
        if req.customer_email:
            params["customer_email"] = req.customer_email
        return params

    async def create_checkout_session(self, req: CheckoutSessionRequest) -> CheckoutSession:  # type: ignore[override]
        params = self._session_params(req)

        def _create():
            return stripe.checkout.Session.create(
                api_key=self._secret_key,
                idempotency_key=req.idempotency_key,
                **params,
            )

        obj = await self._retry(lambda: self._call(_create))
        session = self._to_session(obj)
        self._log(
            "provider_session_created",
            order_id=req.order_id,
            payment_id=req.payment_id,
            session_id=session.session_id,
        )
        return session

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:  # type: ignore[override]
        def _retrieve():
            return stripe.checkout.Session.retrieve(session_id, api_key=self._secret_key)

        obj = await self._retry(lambda: self._call(_retrieve))
        return self._to_session(obj)

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent:  # type: ignore[override]
        if not self._webhook_secret:
            raise PaymentSignatureError("Missing STRIPE__WEBHOOK_SECRET", provider=self.provider)
        sig = headers.get("Stripe-Signature") or headers.get("stripe-signature")
        if not sig:
            raise PaymentSignatureError("Missing Stripe-Signature header", provider=self.provider)
        try:
            stripe.Webhook.construct_event(
                payload=body,
                sig_header=sig,
                secret=self._webhook_secret,
                tolerance=payment_settings.webhook.tolerance_seconds,
            )
        except (ValueError, stripe.SignatureVerificationError) as exc:
            raise PaymentSignatureError(str(exc), provider=self.provider) from exc

        # signature verified; the raw JSON is now trusted
        payload = json.loads(body)
        return WebhookEvent(
            id=str(payload.get("id")),
            type=str(payload.get("type")),
            provider=self.provider,
            data=payload.get("data") or {},
            raw_headers={k: v for k, v in headers.items() if k.lower() != "stripe-signature"},
            raw_body=body,
        )
