import asyncio
from decimal import Decimal

import pytest

from application.dtos.checkout import CheckoutRequest, WebhookOutcome
from domain.common.exceptions import (
    DomainValidationException,
    ForbiddenException,
    OrderNotCancellableException,
    OrderNotFoundException,
)
from domain.order.entity import OrderStatus
from domain.payment.entity import PaymentStatus

from conftest import BUYER_ID, OTHER_BUYER_ID


@pytest.mark.asyncio
async def test_create_order_snapshots_prices(services):
    order = await services.orders.create_order(
        BUYER_ID, [1, 2], billing_address={"city": "Lyon", "country": "FR"}
    )

    assert order.id is not None
    assert order.status == OrderStatus.PENDING
    assert order.currency == "EUR"
    assert order.total_amount == Decimal("150.00")
    assert order.discount == Decimal("20.00")
    assert order.final_amount == Decimal("130.00")
    assert [(i.course_id, i.price, i.discount) for i in order.items] == [
        (1, Decimal("100.00"), Decimal("20.00")),
        (2, Decimal("50.00"), Decimal("0.00")),
    ]

    stored = await services.orders.get_order(order.id, actor_id=BUYER_ID)
    assert stored.billing_address == {"city": "Lyon", "country": "FR"}
    assert stored.final_amount == sum(i.price - i.discount for i in stored.items)


@pytest.mark.asyncio
@pytest.mark.parametrize("course_ids", [[], [999], [1, 999], [4]])
async def test_create_order_rejects_empty_or_invalid_courses(services, course_ids):
    with pytest.raises(DomainValidationException):
        await services.orders.create_order(BUYER_ID, course_ids)


@pytest.mark.asyncio
async def test_duplicate_course_ids_are_collapsed(services):
    order = await services.orders.create_order(BUYER_ID, [2, 2])
    assert order.course_ids == [2]
    assert order.final_amount == Decimal("50.00")


@pytest.mark.asyncio
async def test_cancel_pending_order_cancels_payment(services, snapshot):
    result = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1]))

    cancelled = await services.orders.cancel_order(result.order_id, actor_id=BUYER_ID)

    assert cancelled.status == OrderStatus.CANCELLED
    state = await snapshot(result.order_id)
    assert state.order.status == OrderStatus.CANCELLED
    assert state.payment.status == PaymentStatus.CANCELLED
    assert state.payment.cancelled_at is not None


@pytest.mark.asyncio
async def test_cancel_is_idempotent(services):
    order = await services.orders.create_order(BUYER_ID, [2])
    await services.orders.cancel_order(order.id, actor_id=BUYER_ID)
    again = await services.orders.cancel_order(order.id, actor_id=BUYER_ID)
    assert again.status == OrderStatus.CANCELLED


@pytest.mark.asyncio
async def test_cancel_requires_owner_or_admin(services):
    order = await services.orders.create_order(BUYER_ID, [2])

    with pytest.raises(ForbiddenException):
        await services.orders.cancel_order(order.id, actor_id=OTHER_BUYER_ID)

    cancelled = await services.orders.cancel_order(order.id, actor_id=OTHER_BUYER_ID, is_admin=True)
    assert cancelled.status == OrderStatus.CANCELLED


@pytest.mark.asyncio
async def test_cancel_unknown_order(services):
    with pytest.raises(OrderNotFoundException):
        await services.orders.cancel_order(12345, actor_id=BUYER_ID)


@pytest.mark.asyncio
async def test_cancel_completed_order_conflicts(services):
    result = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1]))
    await services.fulfillment.complete_by_reference(result.session_id)

    with pytest.raises(OrderNotCancellableException):
        await services.orders.cancel_order(result.order_id, actor_id=BUYER_ID)


@pytest.mark.asyncio
async def test_cancel_and_completion_race_has_single_winner(services, snapshot):
    result = await services.checkout.checkout(BUYER_ID, CheckoutRequest(course_ids=[1]))

    cancel, complete = await asyncio.gather(
        services.orders.cancel_order(result.order_id, actor_id=BUYER_ID),
        services.fulfillment.complete_by_reference(result.session_id),
        return_exceptions=True,
    )

    state = await snapshot(result.order_id)
    if state.order.status == OrderStatus.CANCELLED:
        assert state.payment.status == PaymentStatus.CANCELLED
        assert complete[0] == WebhookOutcome.IGNORED
        assert state.enrollments[1] == 0
        assert state.invoice is None
    else:
        assert state.order.status == OrderStatus.COMPLETED
        assert state.payment.status == PaymentStatus.COMPLETED
        assert isinstance(cancel, OrderNotCancellableException)
        assert complete[0] == WebhookOutcome.PROCESSED
        assert state.enrollments[1] == 1
        assert state.invoice is not None
