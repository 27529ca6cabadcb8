from decimal import Decimal

import pytest

from domain.catalog.entity import Course, CourseStatus
from domain.common.exceptions import DomainValidationException, OrderNotCancellableException
from domain.order.entity import Order, OrderStatus
from domain.order.pricing import PriceQuote, PricingSnapshot


def _course(course_id=1, price="100", discount="20", has_certificate=False):
    return Course(
        id=course_id,
        title=f"Course {course_id}",
        price=Decimal(price),
        discount=Decimal(discount),
        has_certificate=has_certificate,
        status=CourseStatus.PUBLISHED,
    )


def test_snapshot_nets_price_minus_discount():
    snap = PricingSnapshot.capture(_course(price="100", discount="20"))
    assert snap.price == Decimal("100.00")
    assert snap.discount == Decimal("20.00")
    assert snap.net_amount == Decimal("80.00")


def test_discount_larger_than_price_is_clamped():
    snap = PricingSnapshot.capture(_course(price="40", discount="60"))
    assert snap.discount == Decimal("40.00")
    assert snap.net_amount == Decimal("0.00")


def test_negative_discount_is_ignored():
    snap = PricingSnapshot.capture(_course(price="40", discount="-5"))
    assert snap.discount == Decimal("0.00")
    assert snap.net_amount == Decimal("40.00")


def test_negative_price_rejected():
    with pytest.raises(DomainValidationException):
        PricingSnapshot.capture(_course(price="-1", discount="0"))


def test_quote_sums_lines_and_detects_free():
    quote = PriceQuote.from_courses([_course(1, "100", "20"), _course(2, "50", "0")])
    assert quote.total_amount == Decimal("150.00")
    assert quote.discount == Decimal("20.00")
    assert quote.final_amount == Decimal("130.00")
    assert not quote.is_free

    free = PriceQuote.from_courses([_course(3, "0", "0")])
    assert free.is_free


def test_snapshot_is_independent_of_later_price_changes():
    course = _course(price="100", discount="20")
    order = Order.from_quote(7, PriceQuote.from_courses([course]), "eur")
    # a catalog edit produces a new Course value; the order keeps its snapshot
    _course(price="500", discount="0")
    assert order.items[0].price == Decimal("100.00")
    assert order.final_amount == Decimal("80.00")
    assert order.final_amount == order.expected_final_amount()
    assert order.currency == "EUR"
    assert order.status == OrderStatus.PENDING


def test_order_requires_items():
    with pytest.raises(DomainValidationException):
        Order.from_quote(7, PriceQuote(lines=()), "eur")


@pytest.mark.parametrize("status", [OrderStatus.COMPLETED, OrderStatus.REFUNDED])
def test_completed_orders_are_not_cancellable(status):
    order = Order.from_quote(7, PriceQuote.from_courses([_course()]), "eur")
    order.id = 1
    order.status = status
    with pytest.raises(OrderNotCancellableException):
        order.ensure_cancellable()
