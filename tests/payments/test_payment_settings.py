import pytest
from pydantic import ValidationError

from application.dtos.payments import CheckoutSessionRequest
from core.settings import PaymentSettings


@pytest.mark.parametrize("currency", ["usd", "EUR", "jpy"])
def test_supported_currency_is_lowercased(currency):
    assert PaymentSettings(PAYMENT__CURRENCY=currency).currency == currency.lower()


@pytest.mark.parametrize("currency", ["MAD", "eu", "e1r"])
def test_unsupported_currency_fails_at_startup(currency):
    with pytest.raises(ValidationError):
        PaymentSettings(PAYMENT__CURRENCY=currency)


def test_settings_currency_is_accepted_by_checkout_request():
    currency = PaymentSettings(PAYMENT__CURRENCY="gbp").currency
    req = CheckoutSessionRequest(
        order_id=1,
        payment_id=1,
        buyer_id=7,
        amount="10.00",
        currency=currency,
        line_items=[{"course_id": 1, "name": "Course", "unit_amount": "10.00"}],
        success_url="https://shop.test/done",
        cancel_url="https://shop.test/cancel",
    )
    assert req.currency == "GBP"
