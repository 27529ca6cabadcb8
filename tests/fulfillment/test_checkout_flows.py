from decimal import Decimal

import pytest

from application.dtos.checkout import CheckoutRequest, WebhookOutcome
from core.settings import payment_settings
from domain.common.exceptions import AlreadyEnrolledException, ConflictException, ForbiddenException
from domain.invoice.entity import InvoiceStatus
from domain.order.entity import OrderStatus
from domain.payment.entity import PaymentMethod, PaymentStatus
from domain.payment.events import FreeEnrollmentGranted, OrderFulfilled
from domain.payment.exceptions import PaymentRecoverableError

from conftest import BUYER_ID, OTHER_BUYER_ID, charge_refunded, checkout_completed, signed_headers


@pytest.mark.asyncio
async def test_free_course_enrolls_without_order_or_payment(services, snapshot, notifier):
    result = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[3]))

    assert result.kind == "free"
    assert result.order_id is None and result.payment_id is None
    assert [(e.course_id, e.price, e.payment_id) for e in result.enrollments] == [(3, Decimal("0.00"), None)]

    state = await snapshot(course_ids=(3,))
    assert state.enrollments[3] == 1
    assert state.certificates[3] is not None
    async with services.uow_factory(readonly=True) as uow:
        assert await uow.order_repository.count_orders(buyer_id=BUYER_ID) == 0
    assert [type(e) for e in notifier.events] == [FreeEnrollmentGranted]


@pytest.mark.asyncio
async def test_fully_discounted_course_takes_the_free_path(services):
    result = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[5]))
    assert result.kind == "free"


@pytest.mark.asyncio
async def test_direct_payment_completes_synchronously(services, snapshot, notifier):
    result = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1], method="direct"))

    assert result.kind == "direct"
    assert result.session_id is None
    assert [e.course_id for e in result.enrollments] == [1]
    assert result.invoice_id is not None

    state = await snapshot(result.order_id)
    assert state.order.status == OrderStatus.COMPLETED
    assert state.payment.status == PaymentStatus.COMPLETED
    assert state.payment.method == PaymentMethod.DIRECT
    assert state.payment.amount == Decimal("80.00")
    assert state.invoice.status == InvoiceStatus.PAID
    assert [type(e) for e in notifier.events] == [OrderFulfilled]


@pytest.mark.asyncio
async def test_direct_payment_can_be_disabled(services, monkeypatch):
    monkeypatch.setattr(payment_settings, "direct_payments_enabled", False)

    with pytest.raises(ConflictException):
        await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1], method="direct"))

    async with services.uow_factory(readonly=True) as uow:
        assert await uow.order_repository.count_orders(buyer_id=BUYER_ID) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["hosted", "direct"])
async def test_already_enrolled_buyer_is_rejected(services, method):
    await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1], method="direct"))

    with pytest.raises(AlreadyEnrolledException) as excinfo:
        await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1, 2], method=method))
    assert excinfo.value.details["course_ids"] == [1]


@pytest.mark.asyncio
async def test_already_enrolled_in_free_course_is_rejected(services):
    await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[3]))
    with pytest.raises(AlreadyEnrolledException):
        await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[3]))


@pytest.mark.asyncio
async def test_stale_hosted_order_is_rejected_after_direct_purchase(services, snapshot):
    hosted = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1]))
    await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1], method="direct"))

    order = await services.orders.get_order(hosted.order_id, actor_id=BUYER_ID)
    with pytest.raises(AlreadyEnrolledException):
        await services.checkout._hosted.initiate(order)

    # a late success event for the stale session still yields one enrollment
    body = checkout_completed(hosted.session_id)
    await services.webhooks.handle(signed_headers(body), body)
    state = await snapshot(hosted.order_id)
    assert state.enrollments[1] == 1


@pytest.mark.asyncio
async def test_refunding_stale_hosted_order_keeps_direct_enrollment(services, snapshot):
    hosted = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1]))
    direct = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1], method="direct"))

    body = checkout_completed(hosted.session_id)
    await services.webhooks.handle(signed_headers(body), body)
    body = charge_refunded(f"pi_{hosted.session_id}")
    outcome = await services.webhooks.handle(signed_headers(body), body)
    assert outcome.outcome == WebhookOutcome.PROCESSED

    stale = await snapshot(hosted.order_id)
    assert stale.order.status == OrderStatus.REFUNDED
    assert stale.payment.status == PaymentStatus.REFUNDED

    kept = await snapshot(direct.order_id)
    assert kept.order.status == OrderStatus.COMPLETED
    assert kept.enrollments[1] == 1
    assert kept.certificates[1] is not None
    async with services.uow_factory(readonly=True) as uow:
        enrollment = await uow.enrollment_repository.get(BUYER_ID, 1)
    assert enrollment.payment_id == kept.payment.id


@pytest.mark.asyncio
async def test_hosted_session_carries_order_metadata(services, provider):
    result = await services.checkout.checkout(
        BUYER_ID,
        CheckoutRequest(course_ids=[1, 2], success_url="https://shop.test/done?x=1"),
        customer_email="buyer@example.test",
    )

    assert result.redirect_url.endswith(result.session_id)
    req = provider.requests[-1]
    assert req.order_id == result.order_id
    assert req.payment_id == result.payment_id
    assert req.buyer_id == BUYER_ID
    assert req.amount == Decimal("130.00")
    assert req.currency == "EUR"
    assert [(li.course_id, li.unit_amount) for li in req.line_items] == [
        (1, Decimal("80.00")),
        (2, Decimal("50.00")),
    ]
    assert req.success_url == "https://shop.test/done?x=1&session_id={CHECKOUT_SESSION_ID}"
    assert req.cancel_url.endswith("?session_id={CHECKOUT_SESSION_ID}")
    assert req.customer_email == "buyer@example.test"
    assert len(req.idempotency_key) == 64
    assert "course_id" not in req.metadata


@pytest.mark.asyncio
async def test_hosted_retry_reuses_pending_payment(services, provider):
    first = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1]))
    order = await services.orders.get_order(first.order_id, actor_id=BUYER_ID)

    retry = await services.checkout._hosted.initiate(order)

    assert retry.payment_id == first.payment_id
    assert provider.requests[0].idempotency_key == provider.requests[1].idempotency_key
    assert provider.requests[0].metadata == {"course_id": "1"}


@pytest.mark.asyncio
async def test_provider_failure_leaves_order_pending(services, provider, snapshot):
    provider.fail_create = PaymentRecoverableError("timeout", provider="stub")

    with pytest.raises(PaymentRecoverableError):
        await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1]))

    async with services.uow_factory(readonly=True) as uow:
        orders = await uow.order_repository.list_orders(buyer_id=BUYER_ID)
    assert len(orders) == 1
    state = await snapshot(orders[0].id)
    assert state.order.status == OrderStatus.PENDING
    assert state.payment.status == PaymentStatus.PENDING
    assert state.payment.transaction_ref is None


@pytest.mark.asyncio
async def test_success_redirect_completes_when_webhook_is_late(services, provider, snapshot):
    result = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1]))

    unpaid = await services.checkout.confirm_checkout(result.session_id, actor_id=BUYER_ID)
    assert unpaid.outcome == WebhookOutcome.IGNORED
    assert unpaid.payment_status == "PENDING"

    provider.payment_status[result.session_id] = "paid"
    redirect = await services.checkout.confirm_checkout(result.session_id, actor_id=BUYER_ID)
    assert redirect.outcome == WebhookOutcome.PROCESSED
    assert redirect.order_status == "COMPLETED"

    # the webhook arriving afterwards is a duplicate
    body = checkout_completed(result.session_id)
    late = await services.webhooks.handle(signed_headers(body), body)
    assert late.outcome == WebhookOutcome.DUPLICATE

    again = await services.checkout.confirm_checkout(result.session_id, actor_id=BUYER_ID)
    assert again.outcome == WebhookOutcome.DUPLICATE
    assert (await snapshot(result.order_id)).enrollments[1] == 1


@pytest.mark.asyncio
async def test_redirects_check_ownership(services):
    result = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1]))

    with pytest.raises(ForbiddenException):
        await services.checkout.confirm_checkout(result.session_id, actor_id=OTHER_BUYER_ID)
    with pytest.raises(ForbiddenException):
        await services.checkout.abandon_checkout(result.session_id, actor_id=OTHER_BUYER_ID)


@pytest.mark.asyncio
async def test_cancel_redirect_cancels_pending_order(services, snapshot):
    result = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1]))

    redirect = await services.checkout.abandon_checkout(result.session_id, actor_id=BUYER_ID)
    assert redirect.outcome == WebhookOutcome.PROCESSED
    assert redirect.order_status == "CANCELLED"
    assert redirect.payment_status == "CANCELLED"

    again = await services.checkout.abandon_checkout(result.session_id, actor_id=BUYER_ID)
    assert again.outcome == WebhookOutcome.DUPLICATE

    state = await snapshot(result.order_id)
    assert state.order.status == OrderStatus.CANCELLED


@pytest.mark.asyncio
async def test_cancel_redirect_after_payment_leaves_order_completed(services):
    result = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1]))
    await services.fulfillment.complete_by_reference(result.session_id)

    redirect = await services.checkout.abandon_checkout(result.session_id, actor_id=BUYER_ID)
    assert redirect.outcome == WebhookOutcome.IGNORED
    assert redirect.order_status == "COMPLETED"
