"""
Fulfillment: grant enrollments, certificates and the invoice once a payment
completes.

Methods taking a `uow` run inside the caller's transaction and never commit.
Notifications are dispatched only after the owning `async with` block has
exited cleanly, so a rolled-back fulfillment never emails a receipt.

Row locks are always taken order first, then payment. Cancellation, payment
initiation and both webhook paths follow the same order.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from application.dtos.checkout import WebhookOutcome
from application.ports.notifier import Notifier, NullNotifier
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.catalog.entity import Course
from domain.common.exceptions import BusinessException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.enrollment.entity import Enrollment, Certificate
from domain.invoice.entity import Invoice
from domain.order.entity import Order, OrderStatus
from domain.order.pricing import ZERO
from domain.payment.entity import Payment, PaymentStatus
from domain.payment.events import PurchaseEvent, OrderFulfilled, FreeEnrollmentGranted
from domain.payment.exceptions import FulfillmentError


logger = get_logger(__name__)


@dataclass
class FulfillmentResult:
    buyer_id: int
    course_ids: list[int]
    order: Optional[Order] = None
    payment: Optional[Payment] = None
    enrollments: list[Enrollment] = field(default_factory=list)
    certificates: list[Certificate] = field(default_factory=list)
    invoice: Optional[Invoice] = None

    def event(self) -> PurchaseEvent:
        if self.order is None:
            return FreeEnrollmentGranted(buyer_id=self.buyer_id, course_ids=self.course_ids)
        return OrderFulfilled(
            buyer_id=self.buyer_id,
            course_ids=self.course_ids,
            order_id=self.order.id,
            payment_id=self.payment.id if self.payment else None,
            invoice_id=self.invoice.id if self.invoice else None,
        )


async def lock_order_and_payment(
    uow: AbstractUnitOfWork, order_id: int
) -> tuple[Optional[Order], Optional[Payment]]:
    order = await uow.order_repository.get_by_id(order_id, for_update=True)
    if order is None:
        return None, None
    payment = await uow.payment_repository.get_by_order_id(order_id, for_update=True)
    return order, payment


async def lock_by_reference(
    uow: AbstractUnitOfWork, reference: str
) -> tuple[Optional[Order], Optional[Payment]]:
    """Resolve a session/charge reference, then lock in the usual order."""
    found = await uow.payment_repository.get_by_reference(reference)
    if found is None:
        return None, None
    return await lock_order_and_payment(uow, found.order_id)


class FulfillmentService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        notifier: Optional[Notifier] = None,
        *,
        invoice_due_days: Optional[int] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._notifier = notifier or NullNotifier()
        self._invoice_due_days = invoice_due_days or payment_settings.invoice_due_days

    async def fulfill(
        self,
        uow: AbstractUnitOfWork,
        order: Order,
        payment: Optional[Payment],
    ) -> FulfillmentResult:
        """Create enrollments, certificates and the single invoice for `order`.

        Existing enrollments/certificates are left alone. Any unexpected error
        is raised as FulfillmentError so the surrounding transaction rolls back.
        """
        try:
            return await self._fulfill(uow, order, payment)
        except BusinessException:
            raise
        except Exception as exc:
            logger.error(
                "fulfillment_failed",
                order_id=order.id,
                payment_id=payment.id if payment else None,
                error=str(exc),
                exc_info=True,
            )
            raise FulfillmentError(
                "Fulfillment failed; the payment stays pending until the event is redelivered",
                order_id=order.id,
                payment_id=payment.id if payment else None,
            ) from exc

    async def _fulfill(
        self,
        uow: AbstractUnitOfWork,
        order: Order,
        payment: Optional[Payment],
    ) -> FulfillmentResult:
        courses = {c.id: c for c in await uow.course_repository.list_by_ids(order.course_ids)}
        result = FulfillmentResult(
            buyer_id=order.buyer_id,
            course_ids=order.course_ids,
            order=order,
            payment=payment,
        )
        payment_id = payment.id if payment else None
        for item in order.items:
            await self._grant(uow, result, order.buyer_id, item.course_id, item.net_amount, payment_id, courses.get(item.course_id))

        invoice = await uow.invoice_repository.get_by_order_id(order.id)
        if invoice is None:
            invoice = await uow.invoice_repository.create(
                Invoice.for_order(order, due_days=self._invoice_due_days)
            )
        result.invoice = invoice

        logger.info(
            "fulfillment_completed",
            order_id=order.id,
            payment_id=payment_id,
            enrollments=len(result.enrollments),
            certificates=len(result.certificates),
            invoice_id=invoice.id,
        )
        return result

    async def _grant(
        self,
        uow: AbstractUnitOfWork,
        result: FulfillmentResult,
        buyer_id: int,
        course_id: int,
        price,
        payment_id: Optional[int],
        course: Optional[Course],
    ) -> None:
        await uow.enrollment_repository.add_if_absent(
            Enrollment.grant(buyer_id, course_id, price, payment_id)
        )
        stored = await uow.enrollment_repository.get(buyer_id, course_id)
        if stored is not None:
            result.enrollments.append(stored)

        if course is not None and course.has_certificate:
            certificate = Certificate.issue(buyer_id, course)
            if await uow.certificate_repository.add_if_absent(certificate):
                result.certificates.append(certificate)

    async def fulfill_free(
        self,
        uow: AbstractUnitOfWork,
        buyer_id: int,
        courses: list[Course],
    ) -> FulfillmentResult:
        """Zero-priced purchase: enroll directly, no order, payment or invoice."""
        result = FulfillmentResult(buyer_id=buyer_id, course_ids=[c.id for c in courses])
        try:
            for course in courses:
                await self._grant(uow, result, buyer_id, course.id, ZERO, None, course)
        except BusinessException:
            raise
        except Exception as exc:
            logger.error("fulfillment_failed", buyer_id=buyer_id, course_ids=result.course_ids, error=str(exc), exc_info=True)
            raise FulfillmentError("Free enrollment failed") from exc
        logger.info("free_enrollment_granted", buyer_id=buyer_id, course_ids=result.course_ids)
        return result

    async def complete_payment(
        self,
        uow: AbstractUnitOfWork,
        order: Order,
        payment: Payment,
        *,
        payment_intent_ref: Optional[str] = None,
    ) -> Optional[FulfillmentResult]:
        """PENDING -> COMPLETED for payment and order, then fulfill.

        Caller must hold the order and payment row locks. Returns None when
        another writer already moved the payment out of PENDING.
        """
        if payment.status != PaymentStatus.PENDING:
            return None
        if not payment.matches_order(order) or order.final_amount != order.expected_final_amount():
            logger.error(
                "payment_amount_mismatch",
                order_id=order.id,
                payment_id=payment.id,
                payment_amount=str(payment.amount),
                order_amount=str(order.final_amount),
            )
            raise FulfillmentError("Payment amount does not match order", order_id=order.id, payment_id=payment.id)

        previous = payment.mark_completed(payment_intent_ref)
        if not await uow.payment_repository.save_transition(payment, previous):
            return None
        if not await uow.order_repository.transition_status(order.id, OrderStatus.PENDING, OrderStatus.COMPLETED):
            raise FulfillmentError("Order is no longer pending", order_id=order.id, payment_id=payment.id)
        order.status = OrderStatus.COMPLETED

        logger.info(
            "payment_completed",
            order_id=order.id,
            payment_id=payment.id,
            method=payment.method.value,
            amount=str(payment.amount),
        )
        return await self.fulfill(uow, order, payment)

    async def complete_by_reference(
        self,
        reference: str,
        *,
        payment_intent_ref: Optional[str] = None,
    ) -> tuple[WebhookOutcome, Optional[Order]]:
        """Shared success path for the webhook and the success redirect."""
        async with self._uow_factory() as uow:
            order, payment = await lock_by_reference(uow, reference)
            if payment is None:
                logger.info("webhook_unknown_reference", reference=reference)
                return WebhookOutcome.UNKNOWN_REFERENCE, None
            if payment.status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
                logger.info("webhook_duplicate_ignored", reference=reference, payment_id=payment.id)
                return WebhookOutcome.DUPLICATE, order
            if payment.status == PaymentStatus.CANCELLED:
                # funds captured for a cancelled order; needs a manual refund
                logger.error("payment_completed_after_cancel", reference=reference, order_id=order.id, payment_id=payment.id)
                return WebhookOutcome.IGNORED, order
            result = await self.complete_payment(uow, order, payment, payment_intent_ref=payment_intent_ref)

        if result is None:
            logger.info("webhook_duplicate_ignored", reference=reference, payment_id=payment.id)
            return WebhookOutcome.DUPLICATE, order
        self.dispatch(result.event())
        return WebhookOutcome.PROCESSED, result.order

    def dispatch(self, event: PurchaseEvent) -> None:
        """Fire-and-forget; the committed result never depends on delivery."""
        try:
            self._notifier.notify(event)
        except Exception as exc:
            logger.error(
                "notification_dispatch_failed",
                event_id=event.event_id,
                buyer_id=event.buyer_id,
                error=str(exc),
            )
