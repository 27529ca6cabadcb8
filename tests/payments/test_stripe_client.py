import json
from decimal import Decimal

import pytest

from application.dtos.payments import CheckoutLineItem, CheckoutSessionRequest
from core.settings import payment_settings
from domain.payment.exceptions import (
    PaymentProviderError,
    PaymentProviderNotConfiguredError,
    PaymentRecoverableError,
    PaymentSignatureError,
)


stripe = pytest.importorskip("stripe")


class _FakeWebhook:
    calls: list = []

    @staticmethod
    def construct_event(payload, sig_header, secret, tolerance=None):
        _FakeWebhook.calls.append((sig_header, secret, tolerance))
        return json.loads(payload)


def _client():
    from infrastructure.external.payments.stripe_client import StripeCheckoutClient

    return StripeCheckoutClient(secret_key="sk_test_123", webhook_secret="whsec_test")


def _request(**overrides):
    data = dict(
        order_id=11,
        payment_id=21,
        buyer_id=7,
        amount=Decimal("130.00"),
        currency="eur",
        line_items=[
            CheckoutLineItem(course_id=1, name="Async Python", unit_amount=Decimal("80.00")),
            CheckoutLineItem(course_id=2, name="SQL Basics", unit_amount=Decimal("50.00"), description="joins"),
        ],
        success_url="https://shop.test/ok?session_id={CHECKOUT_SESSION_ID}",
        cancel_url="https://shop.test/cancel?session_id={CHECKOUT_SESSION_ID}",
        customer_email="buyer@example.test",
        idempotency_key="k" * 64,
    )
    data.update(overrides)
    return CheckoutSessionRequest(**data)


def test_parse_webhook_verifies_before_reading(monkeypatch):
    _FakeWebhook.calls = []
    monkeypatch.setattr(stripe, "Webhook", _FakeWebhook)
    body = json.dumps({
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_1", "payment_status": "paid"}},
    }).encode()

    evt = _client().parse_webhook({"Stripe-Signature": "t=1,v1=abc", "X-Other": "1"}, body)

    assert evt.id == "evt_1"
    assert evt.type == "checkout.session.completed"
    assert evt.provider == "stripe"
    assert evt.object["id"] == "cs_1"
    assert "Stripe-Signature" not in evt.raw_headers
    assert _FakeWebhook.calls == [("t=1,v1=abc", "whsec_test", payment_settings.webhook.tolerance_seconds)]


def test_parse_webhook_rejects_missing_or_bad_signature(monkeypatch):
    class _Rejecting:
        @staticmethod
        def construct_event(payload, sig_header, secret, tolerance=None):
            raise stripe.SignatureVerificationError("No signatures found", sig_header)

    monkeypatch.setattr(stripe, "Webhook", _Rejecting)
    client = _client()

    with pytest.raises(PaymentSignatureError):
        client.parse_webhook({}, b"{}")
    with pytest.raises(PaymentSignatureError):
        client.parse_webhook({"stripe-signature": "t=1,v1=forged"}, b"{}")


def test_client_requires_secret_key(monkeypatch):
    from infrastructure.external.payments.stripe_client import StripeCheckoutClient

    monkeypatch.setattr(payment_settings.stripe, "secret_key", None)
    with pytest.raises(PaymentProviderNotConfiguredError):
        StripeCheckoutClient()


def test_factory_builds_stripe_client():
    from infrastructure.external.payments import build_payment_provider
    from infrastructure.external.payments.stripe_client import StripeCheckoutClient

    assert isinstance(build_payment_provider("stripe"), StripeCheckoutClient)
    with pytest.raises(ValueError):
        build_payment_provider("paypal")


def test_minor_units():
    from infrastructure.external.payments.stripe_client import StripeCheckoutClient

    assert StripeCheckoutClient._to_minor(Decimal("80.00"), "EUR") == 8000
    assert StripeCheckoutClient._to_minor(Decimal("19.99"), "usd") == 1999
    assert StripeCheckoutClient._to_minor(Decimal("500"), "JPY") == 500
    assert StripeCheckoutClient._from_minor(1999, "eur") == Decimal("19.99")
    assert StripeCheckoutClient._from_minor(None, "eur") is None


@pytest.mark.asyncio
async def test_create_session_passes_key_and_idempotency(monkeypatch):
    seen = {}

    def _create(**kwargs):
        seen.update(kwargs)
        return {
            "id": "cs_live_1",
            "url": "https://checkout.stripe.com/c/pay/cs_live_1",
            "status": "open",
            "payment_status": "unpaid",
            "payment_intent": None,
            "amount_total": 13000,
            "currency": "eur",
            "metadata": {"order_id": "11"},
        }

    monkeypatch.setattr(stripe.checkout.Session, "create", _create)

    session = await _client().create_checkout_session(_request())

    assert session.session_id == "cs_live_1"
    assert session.amount_total == Decimal("130.00")
    assert seen["api_key"] == "sk_test_123"
    assert seen["idempotency_key"] == "k" * 64
    assert seen["client_reference_id"] == "11"
    assert seen["customer_email"] == "buyer@example.test"
    assert seen["metadata"] == {"order_id": "11", "payment_id": "21", "buyer_id": "7"}
    assert [li["price_data"]["unit_amount"] for li in seen["line_items"]] == [8000, 5000]
    assert seen["line_items"][1]["price_data"]["product_data"]["description"] == "joins"


@pytest.mark.asyncio
async def test_retrieve_session_expands_intent(monkeypatch):
    def _retrieve(session_id, api_key=None):
        return {
            "id": session_id,
            "payment_status": "paid",
            "payment_intent": {"id": "pi_9"},
            "amount_total": 8000,
            "currency": "eur",
        }

    monkeypatch.setattr(stripe.checkout.Session, "retrieve", _retrieve)

    session = await _client().retrieve_checkout_session("cs_9")

    assert session.payment_status == "paid"
    assert session.payment_intent == "pi_9"


@pytest.mark.asyncio
async def test_sdk_errors_are_classified(monkeypatch):
    attempts = []

    def _down(**kwargs):
        attempts.append(1)
        raise stripe.APIConnectionError("connection reset")

    monkeypatch.setattr(payment_settings.retry, "base_backoff", 0.0)
    monkeypatch.setattr(stripe.checkout.Session, "create", _down)
    client = _client()

    with pytest.raises(PaymentRecoverableError):
        await client.create_checkout_session(_request())
    assert len(attempts) == payment_settings.retry.max + 1

    def _invalid(**kwargs):
        attempts.append(1)
        raise stripe.InvalidRequestError("bad currency", "currency")

    attempts.clear()
    monkeypatch.setattr(stripe.checkout.Session, "create", _invalid)
    with pytest.raises(PaymentProviderError) as excinfo:
        await client.create_checkout_session(_request())
    assert not isinstance(excinfo.value, PaymentRecoverableError)
    assert len(attempts) == 1
