import pytest

from application.services.payment_gateway import with_session_placeholder
from domain.payment.events import FreeEnrollmentGranted, OrderFulfilled, OrderRefunded, PurchaseEvent
from infrastructure.tasks import TaskDispatcher


@pytest.fixture
def dispatcher(monkeypatch):
    sent = []
    d = TaskDispatcher()
    monkeypatch.setattr(d, "enqueue", lambda name, *, args=None, kwargs=None: sent.append((name, kwargs)))
    d.sent = sent
    return d


def test_receipt_routing(dispatcher):
    dispatcher.notify(OrderFulfilled(buyer_id=7, course_ids=[1, 2], order_id=3, payment_id=4, invoice_id=5))
    dispatcher.notify(FreeEnrollmentGranted(buyer_id=7, course_ids=[3]))

    assert dispatcher.sent == [
        (
            "infrastructure.tasks.tasks.notifications.send_purchase_receipt",
            {"buyer_id": 7, "course_ids": [1, 2], "order_id": 3, "invoice_id": 5},
        ),
        (
            "infrastructure.tasks.tasks.notifications.send_purchase_receipt",
            {"buyer_id": 7, "course_ids": [3], "order_id": None, "invoice_id": None},
        ),
    ]


def test_refund_routing(dispatcher):
    dispatcher.notify(OrderRefunded(buyer_id=7, course_ids=[1], order_id=3, payment_id=4))
    assert dispatcher.sent == [
        (
            "infrastructure.tasks.tasks.notifications.send_refund_notice",
            {"buyer_id": 7, "order_id": 3, "course_ids": [1]},
        )
    ]


def test_unknown_events_are_not_sent(dispatcher):
    dispatcher.notify(PurchaseEvent(buyer_id=7, course_ids=[1]))
    assert dispatcher.sent == []


def test_broker_failure_is_swallowed(monkeypatch):
    def _down(name, *, args=None, kwargs=None):
        raise ConnectionError("broker unreachable")

    d = TaskDispatcher()
    monkeypatch.setattr(d, "enqueue", _down)
    d.notify(OrderFulfilled(buyer_id=7, course_ids=[1], order_id=3))


def test_tasks_run_eagerly():
    from infrastructure.tasks.tasks.notifications import send_purchase_receipt, send_refund_notice

    assert send_purchase_receipt.apply(kwargs={"buyer_id": 7, "course_ids": [3]}).successful()
    assert send_refund_notice.apply(kwargs={"buyer_id": 7, "order_id": 3, "course_ids": [1]}).successful()


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://shop.test/done", "https://shop.test/done?session_id={CHECKOUT_SESSION_ID}"),
        ("https://shop.test/done?x=1", "https://shop.test/done?x=1&session_id={CHECKOUT_SESSION_ID}"),
        ("https://shop.test/done?session_id=abc", "https://shop.test/done?session_id=abc"),
    ],
)
def test_session_placeholder(url, expected):
    assert with_session_placeholder(url) == expected
