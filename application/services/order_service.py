"""
订单应用服务 - 下单（价格快照）与取消
"""
from __future__ import annotations

from typing import Callable, Optional, List

from application.services.fulfillment_service import lock_order_and_payment
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.catalog.entity import Course
from domain.common.exceptions import (
    DomainValidationException,
    ForbiddenException,
    OrderNotFoundException,
    OrderNotCancellableException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderStatus
from domain.order.pricing import PriceQuote
from domain.payment.entity import PaymentStatus


logger = get_logger(__name__)


class OrderService:
    """订单应用服务"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        currency: Optional[str] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._currency = (currency or payment_settings.currency).upper()

    async def quote(self, uow: AbstractUnitOfWork, course_ids: List[int]) -> tuple[PriceQuote, List[Course]]:
        """校验课程并计算价格快照（不落库）

        课程不存在或不可购买都视为参数错误。
        """
        course_ids = list(dict.fromkeys(course_ids or []))
        if not course_ids:
            raise DomainValidationException("At least one course is required", field="course_ids")

        found = {c.id: c for c in await uow.course_repository.list_by_ids(course_ids)}
        missing = [cid for cid in course_ids if cid not in found]
        if missing:
            raise DomainValidationException(
                "Invalid course id",
                field="course_ids",
                details={"course_ids": missing},
            )
        unavailable = [cid for cid in course_ids if not found[cid].is_purchasable()]
        if unavailable:
            raise DomainValidationException(
                "Course is not available for purchase",
                field="course_ids",
                details={"course_ids": unavailable},
            )

        courses = [found[cid] for cid in course_ids]
        return PriceQuote.from_courses(courses), courses

    async def create_order_in(
        self,
        uow: AbstractUnitOfWork,
        buyer_id: int,
        quote: PriceQuote,
        *,
        billing_address: Optional[dict] = None,
    ) -> Order:
        order = Order.from_quote(buyer_id, quote, self._currency, billing_address)
        return await uow.order_repository.create(order)

    async def create_order(
        self,
        buyer_id: int,
        course_ids: List[int],
        *,
        billing_address: Optional[dict] = None,
    ) -> Order:
        """创建 PENDING 订单及订单项"""
        async with self._uow_factory() as uow:
            quote, _ = await self.quote(uow, course_ids)
            return await self.create_order_in(uow, buyer_id, quote, billing_address=billing_address)

    async def get_order(self, order_id: int, *, actor_id: int, is_admin: bool = False) -> Order:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        if not is_admin and order.buyer_id != actor_id:
            raise ForbiddenException("Not the owner of this order")
        return order

    async def cancel_order(self, order_id: int, *, actor_id: int, is_admin: bool = False) -> Order:
        """PENDING -> CANCELLED（订单与支付同时取消）

        状态写入带 WHERE status='PENDING' 条件，与并发到达的支付成功回调互斥。
        已取消的订单重复取消为幂等操作。
        """
        async with self._uow_factory() as uow:
            order, payment = await lock_order_and_payment(uow, order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            if not is_admin and order.buyer_id != actor_id:
                raise ForbiddenException("Not the owner of this order")
            if order.status == OrderStatus.CANCELLED:
                return order
            order.ensure_cancellable()

            if not await uow.order_repository.transition_status(order.id, OrderStatus.PENDING, OrderStatus.CANCELLED):
                current = await uow.order_repository.get_by_id(order.id)
                raise OrderNotCancellableException(order.id, current.status.value if current else "UNKNOWN")

            if payment is not None and payment.status == PaymentStatus.PENDING:
                previous = payment.mark_cancelled()
                if not await uow.payment_repository.save_transition(payment, previous):
                    # payment completed between lock and write; roll back the order update
                    raise OrderNotCancellableException(order.id, OrderStatus.COMPLETED.value)

            order.status = OrderStatus.CANCELLED
            logger.info(
                "order_cancelled",
                order_id=order.id,
                payment_id=payment.id if payment else None,
                actor_id=actor_id,
            )
            return order
