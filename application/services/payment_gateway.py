"""
Payment gateway: one `initiate(order)` contract, two variants.

- DirectPaymentGateway charges synchronously (manual/simulated card entry) and
  fulfills in the same transaction.
- HostedCheckoutGateway opens a provider checkout session; fulfillment happens
  later through the webhook or the success redirect.

Both reject orders whose buyer already owns one of the courses.
"""
from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from typing import Callable, Optional
from urllib.parse import urlsplit

from application.dtos.checkout import EnrollmentDTO, PaymentHandle
from application.dtos.payments import CheckoutLineItem, CheckoutSessionRequest
from application.ports.payment_provider import PaymentProvider
from application.services.fulfillment_service import FulfillmentService, lock_order_and_payment
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.exceptions import (
    AlreadyEnrolledException,
    ConflictException,
    ForbiddenException,
    OrderNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order
from domain.payment.entity import Payment, PaymentMethod, PaymentStatus


logger = get_logger(__name__)

SESSION_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


def _session_idempotency_key(order: Order, payment: Payment) -> str:
    # Stable across retries of the same order/payment (no timestamp)
    base = f"checkout|{order.id}|{payment.id}|{payment.amount}|{payment.currency}"
    return hashlib.sha256(base.encode("utf-8")).hexdigest()


def with_session_placeholder(url: str) -> str:
    """Append `session_id={CHECKOUT_SESSION_ID}` unless the URL already carries one."""
    if "session_id=" in (urlsplit(url).query or ""):
        return url
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}session_id={SESSION_PLACEHOLDER}"


class PaymentGateway(ABC):
    method: PaymentMethod

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        fulfillment: FulfillmentService,
    ) -> None:
        self._uow_factory = uow_factory
        self._fulfillment = fulfillment

    def ensure_available(self) -> None:
        """Raise before any order is written when this variant cannot be used."""
        return None

    @abstractmethod
    async def initiate(self, order: Order, **options) -> PaymentHandle:
        ...

    async def _lock_pending_order(self, uow: AbstractUnitOfWork, order: Order) -> tuple[Order, Optional[Payment]]:
        locked, payment = await lock_order_and_payment(uow, order.id)
        if locked is None:
            raise OrderNotFoundException(order.id)
        if locked.buyer_id != order.buyer_id:
            raise ForbiddenException("Not the owner of this order")
        if not locked.is_pending():
            raise ConflictException(
                f"Order {locked.id} is {locked.status.value}",
                details={"order_id": locked.id, "status": locked.status.value},
            )
        enrolled = await uow.enrollment_repository.list_enrolled_course_ids(locked.buyer_id, locked.course_ids)
        if enrolled:
            raise AlreadyEnrolledException(locked.buyer_id, enrolled)
        return locked, payment

    async def _pending_payment(self, uow: AbstractUnitOfWork, order: Order, existing: Optional[Payment]) -> Payment:
        """Reuse the order's PENDING payment or create it (one payment per order)."""
        if existing is not None:
            if existing.status != PaymentStatus.PENDING:
                raise ConflictException(
                    f"Payment for order {order.id} is {existing.status.value}",
                    details={"order_id": order.id, "payment_id": existing.id},
                )
            if existing.method != self.method:
                raise ConflictException(
                    f"Order {order.id} already has a {existing.method.value} payment",
                    details={"order_id": order.id, "payment_id": existing.id},
                )
            return existing
        return await uow.payment_repository.create(Payment.for_order(order, self.method))


class DirectPaymentGateway(PaymentGateway):
    method = PaymentMethod.DIRECT

    def ensure_available(self) -> None:
        if not payment_settings.direct_payments_enabled:
            raise ConflictException("Direct payments are disabled")

    async def initiate(self, order: Order, **options) -> PaymentHandle:
        self.ensure_available()
        async with self._uow_factory() as uow:
            locked, existing = await self._lock_pending_order(uow, order)
            payment = await self._pending_payment(uow, locked, existing)
            result = await self._fulfillment.complete_payment(uow, locked, payment)
            if result is None:
                raise ConflictException(f"Payment for order {locked.id} was completed concurrently")

        self._fulfillment.dispatch(result.event())
        return PaymentHandle(
            order_id=locked.id,
            payment_id=payment.id,
            method=self.method.value,
            status=payment.status.value,
            enrollments=[EnrollmentDTO.from_entity(e) for e in result.enrollments],
            invoice_id=result.invoice.id if result.invoice else None,
        )


class HostedCheckoutGateway(PaymentGateway):
    method = PaymentMethod.HOSTED_CHECKOUT

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        fulfillment: FulfillmentService,
        provider: PaymentProvider,
    ) -> None:
        super().__init__(uow_factory, fulfillment)
        self._provider = provider

    async def initiate(
        self,
        order: Order,
        *,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
        customer_email: Optional[str] = None,
        **options,
    ) -> PaymentHandle:
        async with self._uow_factory() as uow:
            locked, existing = await self._lock_pending_order(uow, order)
            payment = await self._pending_payment(uow, locked, existing)

        # Provider call happens outside any transaction; on failure the
        # order/payment simply stay PENDING and the buyer can retry.
        metadata = {}
        if len(locked.items) == 1:
            metadata["course_id"] = str(locked.items[0].course_id)
        request = CheckoutSessionRequest(
            order_id=locked.id,
            payment_id=payment.id,
            buyer_id=locked.buyer_id,
            amount=payment.amount,
            currency=payment.currency,
            line_items=[
                CheckoutLineItem(
                    course_id=item.course_id,
                    name=item.title or f"Course {item.course_id}",
                    unit_amount=item.net_amount,
                )
                for item in locked.items
            ],
            success_url=with_session_placeholder(success_url or payment_settings.checkout.success_url),
            cancel_url=with_session_placeholder(cancel_url or payment_settings.checkout.cancel_url),
            customer_email=customer_email,
            idempotency_key=_session_idempotency_key(locked, payment),
            metadata=metadata,
        )
        session = await self._provider.create_checkout_session(request)

        async with self._uow_factory() as uow:
            attached = await uow.payment_repository.set_transaction_ref(payment.id, session.session_id)
        if not attached:
            # cancelled or completed while the buyer was being redirected
            logger.warning("checkout_session_orphaned", order_id=locked.id, payment_id=payment.id, session_id=session.session_id)
            raise ConflictException(
                f"Order {locked.id} is no longer pending",
                details={"order_id": locked.id, "payment_id": payment.id},
            )

        logger.info(
            "checkout_session_created",
            order_id=locked.id,
            payment_id=payment.id,
            session_id=session.session_id,
        )
        return PaymentHandle(
            order_id=locked.id,
            payment_id=payment.id,
            method=self.method.value,
            status=PaymentStatus.PENDING.value,
            session_id=session.session_id,
            redirect_url=session.url,
        )
