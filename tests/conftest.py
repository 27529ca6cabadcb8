"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os
import tempfile

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault(
    "DATABASE__URL",
    "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "coursepay-import.db"),
)
os.environ.setdefault("STRIPE__SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE__WEBHOOK_SECRET", "whsec_test")

import hashlib
import hmac
import itertools
import json
from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio

from application.dtos.payments import CheckoutSession, CheckoutSessionRequest, WebhookEvent
from application.services.checkout_service import CheckoutService
from application.services.fulfillment_service import FulfillmentService
from application.services.order_service import OrderService
from application.services.refund_service import RefundService
from application.services.transaction_service import TransactionService
from application.services.webhook_service import WebhookService
from domain.payment.exceptions import PaymentSignatureError
from infrastructure.database import build_engine, build_session_factory, create_tables
from infrastructure.models import CourseModel
from infrastructure.unit_of_work import build_uow_factory


STUB_WEBHOOK_SECRET = "whsec_stub"

BUYER_ID = 7
OTHER_BUYER_ID = 8

# id -> (title, price, discount, has_certificate, status)
COURSES = {
    1: ("Async Python", "100.00", "20.00", True, "PUBLISHED"),
    2: ("SQL Basics", "50.00", "0.00", False, "PUBLISHED"),
    3: ("Intro to Git", "0.00", "0.00", True, "PUBLISHED"),
    4: ("Unreleased", "30.00", "0.00", False, "DRAFT"),
    5: ("Over-discounted", "40.00", "60.00", False, "PUBLISHED"),
}


def sign(body: bytes, secret: str = STUB_WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class StubProvider:
    """In-process hosted checkout provider with HMAC-signed webhooks."""

    provider = "stub"

    def __init__(self):
        self._ids = itertools.count(1)
        self.requests: list[CheckoutSessionRequest] = []
        self.payment_status: dict[str, str] = {}
        self.fail_create = None

    async def create_checkout_session(self, req: CheckoutSessionRequest) -> CheckoutSession:
        if self.fail_create is not None:
            raise self.fail_create
        self.requests.append(req)
        session_id = f"cs_test_{next(self._ids)}"
        self.payment_status[session_id] = "unpaid"
        return CheckoutSession(
            session_id=session_id,
            provider=self.provider,
            url=f"https://checkout.example.test/pay/{session_id}",
            status="open",
            payment_status="unpaid",
            amount_total=req.amount,
            metadata=req.metadata,
        )

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        paid = self.payment_status.get(session_id, "unpaid")
        return CheckoutSession(
            session_id=session_id,
            provider=self.provider,
            status="complete" if paid == "paid" else "open",
            payment_status=paid,
            payment_intent=f"pi_{session_id}" if paid == "paid" else None,
        )

    def parse_webhook(self, headers: dict, body: bytes) -> WebhookEvent:
        signature = headers.get("stub-signature") or ""
        if not hmac.compare_digest(signature, sign(body)):
            raise PaymentSignatureError("Invalid signature", provider=self.provider)
        payload = json.loads(body)
        return WebhookEvent(id=payload["id"], type=payload["type"], provider=self.provider, data=payload["data"])

    async def aclose(self) -> None:
        return None


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, event) -> None:
        self.events.append(event)


def checkout_completed(session_id: str, *, payment_status: str = "paid", event_id: str = "evt_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": session_id,
            "object": "checkout.session",
            "payment_status": payment_status,
            "payment_intent": f"pi_{session_id}",
        }},
    }).encode()


def charge_refunded(payment_intent: str, *, event_id: str = "evt_refund_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "type": "charge.refunded",
        "data": {"object": {"id": "ch_1", "object": "charge", "payment_intent": payment_intent, "refunded": True}},
    }).encode()


def signed_headers(body: bytes) -> dict:
    return {"stub-signature": sign(body), "content-type": "application/json"}


@pytest_asyncio.fixture
async def engine(tmp_path):
    db_engine = build_engine(f"sqlite:///{tmp_path / 'coursepay.db'}")
    await create_tables(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def uow_factory(session_factory):
    async with session_factory() as session:
        async with session.begin():
            for course_id, (title, price, discount, has_certificate, status) in COURSES.items():
                session.add(CourseModel(
                    id=course_id,
                    title=title,
                    price=Decimal(price),
                    discount=Decimal(discount),
                    has_certificate=has_certificate,
                    status=status,
                    instructor_name="Ada Lovelace",
                ))
    return build_uow_factory(session_factory)


@pytest.fixture
def provider():
    return StubProvider()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def services(uow_factory, provider, notifier):
    orders = OrderService(uow_factory, currency="eur")
    fulfillment = FulfillmentService(uow_factory, notifier)
    refunds = RefundService(uow_factory, notifier)
    return SimpleNamespace(
        uow_factory=uow_factory,
        orders=orders,
        fulfillment=fulfillment,
        refunds=refunds,
        checkout=CheckoutService(uow_factory, orders, fulfillment, provider),
        webhooks=WebhookService(provider, fulfillment, refunds),
        transactions=TransactionService(uow_factory),
    )


@pytest.fixture
def snapshot(uow_factory):
    """Read back persisted state for assertions."""

    async def _snapshot(order_id=None, *, buyer_id=BUYER_ID, course_ids=(1,)):
        async with uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id) if order_id else None
            payment = await uow.payment_repository.get_by_order_id(order_id) if order_id else None
            invoice = await uow.invoice_repository.get_by_order_id(order_id) if order_id else None
            enrollments = {cid: await uow.enrollment_repository.count_for(buyer_id, cid) for cid in course_ids}
            certificates = {cid: await uow.certificate_repository.get(buyer_id, cid) for cid in course_ids}
        return SimpleNamespace(
            order=order,
            payment=payment,
            invoice=invoice,
            enrollments=enrollments,
            certificates=certificates,
        )

    return _snapshot
