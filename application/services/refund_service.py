"""
Refunds: reverse fulfillment when the provider reports a refunded charge.
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dtos.checkout import WebhookOutcome
from application.ports.notifier import Notifier, NullNotifier
from application.services.fulfillment_service import lock_by_reference
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderStatus
from domain.payment.entity import Payment, PaymentStatus
from domain.payment.events import OrderRefunded
from domain.payment.exceptions import FulfillmentError, RefundOutOfOrderError


logger = get_logger(__name__)


class RefundService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._notifier = notifier or NullNotifier()

    async def reverse(self, uow: AbstractUnitOfWork, order: Order, payment: Payment) -> dict:
        """Remove the enrollments/certificates this payment granted and flip the invoice.

        An enrollment granted by another payment (e.g. a direct purchase that
        beat a stale hosted session) is kept, and so is its certificate.
        Deleting rows that are already gone is a no-op.
        """
        removed = {"enrollments": 0, "certificates": 0, "invoice": False}
        try:
            for course_id in order.course_ids:
                if not await uow.enrollment_repository.delete(order.buyer_id, course_id, payment_id=payment.id):
                    continue
                removed["enrollments"] += 1
                if await uow.certificate_repository.delete(order.buyer_id, course_id):
                    removed["certificates"] += 1
            removed["invoice"] = await uow.invoice_repository.mark_refunded(order.id)
        except BusinessException:
            raise
        except Exception as exc:
            logger.error("refund_reversal_failed", order_id=order.id, error=str(exc), exc_info=True)
            raise FulfillmentError("Refund reversal failed", order_id=order.id) from exc
        return removed

    async def refund_payment(
        self,
        uow: AbstractUnitOfWork,
        order: Order,
        payment: Payment,
        *,
        reference: str = "",
    ) -> bool:
        """COMPLETED -> REFUNDED for payment and order, then reverse.

        Caller holds both row locks. A still-PENDING payment means the refund
        overtook the success event; raising lets the provider redeliver later.
        """
        if payment.status == PaymentStatus.REFUNDED:
            return False
        if payment.status == PaymentStatus.PENDING:
            logger.warning("refund_out_of_order", reference=reference, payment_id=payment.id)
            raise RefundOutOfOrderError(reference or str(payment.id), payment.status.value)
        if payment.status != PaymentStatus.COMPLETED:
            return False

        previous = payment.mark_refunded()
        if not await uow.payment_repository.save_transition(payment, previous):
            return False
        if not await uow.order_repository.transition_status(order.id, OrderStatus.COMPLETED, OrderStatus.REFUNDED):
            raise FulfillmentError("Order is not completed", order_id=order.id, payment_id=payment.id)
        order.status = OrderStatus.REFUNDED

        removed = await self.reverse(uow, order, payment)
        logger.info(
            "refund_applied",
            order_id=order.id,
            payment_id=payment.id,
            reference=reference,
            **removed,
        )
        return True

    async def refund_by_reference(self, reference: str) -> tuple[WebhookOutcome, Optional[Order]]:
        async with self._uow_factory() as uow:
            order, payment = await lock_by_reference(uow, reference)
            if payment is None:
                logger.info("webhook_unknown_reference", reference=reference)
                return WebhookOutcome.UNKNOWN_REFERENCE, None
            if payment.status == PaymentStatus.REFUNDED:
                logger.info("webhook_duplicate_ignored", reference=reference, payment_id=payment.id)
                return WebhookOutcome.DUPLICATE, order
            if payment.status == PaymentStatus.CANCELLED:
                logger.warning("webhook_event_ignored", reference=reference, payment_status=payment.status.value)
                return WebhookOutcome.IGNORED, order
            applied = await self.refund_payment(uow, order, payment, reference=reference)

        if not applied:
            return WebhookOutcome.DUPLICATE, order
        try:
            self._notifier.notify(
                OrderRefunded(
                    buyer_id=order.buyer_id,
                    course_ids=order.course_ids,
                    order_id=order.id,
                    payment_id=payment.id,
                )
            )
        except Exception as exc:
            logger.error("notification_dispatch_failed", order_id=order.id, error=str(exc))
        return WebhookOutcome.PROCESSED, order
