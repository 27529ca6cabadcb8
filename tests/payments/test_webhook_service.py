import asyncio
from decimal import Decimal

import pytest

from application.dtos.checkout import CheckoutRequest, WebhookOutcome
from domain.enrollment.entity import EnrollmentStatus
from domain.invoice.entity import InvoiceStatus
from domain.order.entity import OrderStatus
from domain.payment.entity import PaymentStatus
from domain.payment.events import OrderFulfilled, OrderRefunded
from domain.payment.exceptions import FulfillmentError, PaymentSignatureError, RefundOutOfOrderError
from infrastructure.repositories.enrollment_repository import SQLAlchemyCertificateRepository

from conftest import BUYER_ID, charge_refunded, checkout_completed, signed_headers


async def _hosted_order(services, course_ids=(1,)):
    result = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=list(course_ids)))
    assert result.kind == "hosted"
    return result


async def _deliver(services, body):
    return await services.webhooks.handle(signed_headers(body), body)


@pytest.mark.asyncio
async def test_success_event_fulfills_order(services, snapshot, notifier):
    # price 100, discount 20
    result = await _hosted_order(services)

    outcome = await _deliver(services, checkout_completed(result.session_id))

    assert outcome.outcome == WebhookOutcome.PROCESSED
    assert outcome.order_id == result.order_id
    state = await snapshot(result.order_id)
    assert state.order.status == OrderStatus.COMPLETED
    assert state.order.final_amount == Decimal("80.00")
    assert state.payment.status == PaymentStatus.COMPLETED
    assert state.payment.amount == state.order.final_amount
    assert state.payment.payment_intent_ref == f"pi_{result.session_id}"
    assert state.enrollments[1] == 1
    assert state.certificates[1] is not None
    assert state.certificates[1].title == "Async Python"
    assert state.certificates[1].instructor_name == "Ada Lovelace"
    assert state.invoice.status == InvoiceStatus.PAID
    assert state.invoice.final_amount == Decimal("80.00")
    assert (state.invoice.due_date - state.invoice.issue_date).days == 30

    async with services.uow_factory(readonly=True) as uow:
        enrollment = await uow.enrollment_repository.get(BUYER_ID, 1)
    assert enrollment.status == EnrollmentStatus.ACTIVE
    assert enrollment.price == Decimal("80.00")
    assert enrollment.payment_id == state.payment.id

    assert [type(e) for e in notifier.events] == [OrderFulfilled]
    assert notifier.events[0].invoice_id == state.invoice.id


@pytest.mark.asyncio
async def test_redelivered_success_event_is_a_noop(services, snapshot, notifier):
    result = await _hosted_order(services)
    body = checkout_completed(result.session_id)

    first = await _deliver(services, body)
    outcomes = [await _deliver(services, body) for _ in range(3)]

    assert first.outcome == WebhookOutcome.PROCESSED
    assert {o.outcome for o in outcomes} == {WebhookOutcome.DUPLICATE}
    state = await snapshot(result.order_id)
    assert state.enrollments[1] == 1
    assert state.invoice is not None
    assert len(notifier.events) == 1


@pytest.mark.asyncio
async def test_concurrent_deliveries_fulfill_once(services, snapshot):
    result = await _hosted_order(services)
    body = checkout_completed(result.session_id)

    outcomes = await asyncio.gather(*(_deliver(services, body) for _ in range(3)))

    assert sorted(o.outcome.value for o in outcomes) == ["duplicate", "duplicate", "processed"]
    state = await snapshot(result.order_id)
    assert state.enrollments[1] == 1


@pytest.mark.asyncio
async def test_cart_order_fulfills_every_course_with_one_invoice(services, snapshot):
    result = await _hosted_order(services, course_ids=(1, 2))

    await _deliver(services, checkout_completed(result.session_id))

    state = await snapshot(result.order_id, course_ids=(1, 2))
    assert state.enrollments == {1: 1, 2: 1}
    # only course 1 offers a certificate
    assert state.certificates[1] is not None
    assert state.certificates[2] is None
    assert state.invoice.final_amount == Decimal("130.00")


@pytest.mark.asyncio
async def test_refund_reverses_fulfillment(services, snapshot, notifier):
    result = await _hosted_order(services)
    await _deliver(services, checkout_completed(result.session_id))

    outcome = await _deliver(services, charge_refunded(f"pi_{result.session_id}"))

    assert outcome.outcome == WebhookOutcome.PROCESSED
    state = await snapshot(result.order_id)
    assert state.order.status == OrderStatus.REFUNDED
    assert state.payment.status == PaymentStatus.REFUNDED
    assert state.invoice.status == InvoiceStatus.REFUNDED
    assert state.enrollments[1] == 0
    assert state.certificates[1] is None
    assert isinstance(notifier.events[-1], OrderRefunded)


@pytest.mark.asyncio
async def test_redelivered_refund_is_a_noop(services, snapshot, notifier):
    result = await _hosted_order(services)
    await _deliver(services, checkout_completed(result.session_id))
    body = charge_refunded(f"pi_{result.session_id}")

    outcomes = [await _deliver(services, body) for _ in range(3)]

    assert [o.outcome for o in outcomes] == [
        WebhookOutcome.PROCESSED,
        WebhookOutcome.DUPLICATE,
        WebhookOutcome.DUPLICATE,
    ]
    state = await snapshot(result.order_id)
    assert state.invoice.status == InvoiceStatus.REFUNDED
    assert state.enrollments[1] == 0
    assert sum(isinstance(e, OrderRefunded) for e in notifier.events) == 1


@pytest.mark.asyncio
async def test_refund_can_reference_the_session_id(services, snapshot):
    result = await _hosted_order(services)
    await _deliver(services, checkout_completed(result.session_id))

    outcome = await _deliver(services, charge_refunded(result.session_id))

    assert outcome.outcome == WebhookOutcome.PROCESSED
    assert (await snapshot(result.order_id)).order.status == OrderStatus.REFUNDED


@pytest.mark.asyncio
async def test_refund_before_success_is_rejected_for_redelivery(services, snapshot):
    result = await _hosted_order(services)

    with pytest.raises(RefundOutOfOrderError):
        await _deliver(services, charge_refunded(result.session_id))

    state = await snapshot(result.order_id)
    assert state.order.status == OrderStatus.PENDING
    assert state.payment.status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_fulfillment_failure_rolls_everything_back(services, snapshot, notifier, monkeypatch):
    result = await _hosted_order(services)
    body = checkout_completed(result.session_id)

    async def _boom(self, certificate):
        raise RuntimeError("certificate store unavailable")

    monkeypatch.setattr(SQLAlchemyCertificateRepository, "add_if_absent", _boom)
    with pytest.raises(FulfillmentError):
        await _deliver(services, body)

    state = await snapshot(result.order_id)
    assert state.order.status == OrderStatus.PENDING
    assert state.payment.status == PaymentStatus.PENDING
    assert state.enrollments[1] == 0
    assert state.invoice is None
    assert notifier.events == []

    # provider redelivers once the fault is gone
    monkeypatch.undo()
    outcome = await _deliver(services, body)
    assert outcome.outcome == WebhookOutcome.PROCESSED
    state = await snapshot(result.order_id)
    assert state.enrollments[1] == 1
    assert state.invoice is not None


@pytest.mark.asyncio
async def test_invalid_signature_mutates_nothing(services, snapshot):
    result = await _hosted_order(services)
    body = checkout_completed(result.session_id)

    with pytest.raises(PaymentSignatureError):
        await services.webhooks.handle({"stub-signature": "forged"}, body)
    with pytest.raises(PaymentSignatureError):
        await services.webhooks.handle({}, body)

    state = await snapshot(result.order_id)
    assert state.payment.status == PaymentStatus.PENDING
    assert state.enrollments[1] == 0


@pytest.mark.asyncio
async def test_unknown_reference_is_acknowledged(services):
    outcome = await _deliver(services, checkout_completed("cs_foreign"))
    assert outcome.outcome == WebhookOutcome.UNKNOWN_REFERENCE

    outcome = await _deliver(services, charge_refunded("pi_foreign"))
    assert outcome.outcome == WebhookOutcome.UNKNOWN_REFERENCE


@pytest.mark.asyncio
async def test_unrecognized_event_kind_is_ignored(services):
    import json

    body = json.dumps({"id": "evt_x", "type": "customer.created", "data": {"object": {"id": "cus_1"}}}).encode()
    outcome = await _deliver(services, body)
    assert outcome.outcome == WebhookOutcome.IGNORED
    assert outcome.event_type == "customer.created"


@pytest.mark.asyncio
async def test_unpaid_session_completion_is_ignored(services, snapshot):
    result = await _hosted_order(services)

    outcome = await _deliver(services, checkout_completed(result.session_id, payment_status="unpaid"))

    assert outcome.outcome == WebhookOutcome.IGNORED
    assert (await snapshot(result.order_id)).payment.status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_success_after_cancel_does_not_fulfill(services, snapshot):
    result = await _hosted_order(services)
    await services.orders.cancel_order(result.order_id, actor_id=BUYER_ID)

    outcome = await _deliver(services, checkout_completed(result.session_id))

    assert outcome.outcome == WebhookOutcome.IGNORED
    state = await snapshot(result.order_id)
    assert state.order.status == OrderStatus.CANCELLED
    assert state.enrollments[1] == 0
