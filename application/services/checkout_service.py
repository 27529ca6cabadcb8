"""
结账编排 - 免费课程直通、托管/直接支付发起、成功/取消回跳
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dtos.checkout import (
    CheckoutRequest,
    CheckoutResult,
    EnrollmentDTO,
    RedirectResult,
    WebhookOutcome,
)
from application.ports.payment_provider import PaymentProvider
from application.services.fulfillment_service import FulfillmentService
from application.services.order_service import OrderService
from application.services.payment_gateway import (
    DirectPaymentGateway,
    HostedCheckoutGateway,
    PaymentGateway,
)
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.exceptions import (
    AlreadyEnrolledException,
    ForbiddenException,
    PaymentNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order
from domain.payment.entity import Payment, PaymentStatus
from domain.payment.exceptions import PaymentProviderNotConfiguredError
from shared.codes.payment_codes import PAID_SESSION_STATUSES


logger = get_logger(__name__)


class CheckoutService:
    """结账应用服务

    - 免费（final_amount == 0）：不创建订单/支付，直接开通课程
    - hosted：创建订单后跳转第三方收银台，履约由 webhook 或成功回跳驱动
    - direct：同步扣款并在同一事务内履约
    """

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        orders: OrderService,
        fulfillment: FulfillmentService,
        provider: Optional[PaymentProvider] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._orders = orders
        self._fulfillment = fulfillment
        self._provider = provider
        self._direct = DirectPaymentGateway(uow_factory, fulfillment)
        self._hosted = HostedCheckoutGateway(uow_factory, fulfillment, provider) if provider else None

    def _gateway(self, method: str) -> PaymentGateway:
        if method == "direct":
            gateway: Optional[PaymentGateway] = self._direct
        else:
            gateway = self._hosted
        if gateway is None:
            raise PaymentProviderNotConfiguredError(payment_settings.default_provider)
        gateway.ensure_available()
        return gateway

    async def checkout(
        self,
        buyer_id: int,
        request: CheckoutRequest,
        *,
        customer_email: Optional[str] = None,
    ) -> CheckoutResult:
        async with self._uow_factory() as uow:
            quote, courses = await self._orders.quote(uow, request.course_ids)
            enrolled = await uow.enrollment_repository.list_enrolled_course_ids(buyer_id, quote.course_ids)
            if enrolled:
                raise AlreadyEnrolledException(buyer_id, enrolled)

            if quote.is_free:
                free = await self._fulfillment.fulfill_free(uow, buyer_id, courses)
                order = None
            else:
                # 先确认支付方式可用，避免留下无法支付的订单
                gateway = self._gateway(request.method)
                order = await self._orders.create_order_in(
                    uow, buyer_id, quote, billing_address=request.billing_address
                )

        if order is None:
            self._fulfillment.dispatch(free.event())
            return CheckoutResult(
                kind="free",
                enrollments=[EnrollmentDTO.from_entity(e) for e in free.enrollments],
            )

        handle = await gateway.initiate(
            order,
            success_url=request.success_url,
            cancel_url=request.cancel_url,
            customer_email=customer_email,
        )
        return CheckoutResult.from_handle(handle)

    async def _load(self, session_id: str) -> tuple[Order, Payment]:
        async with self._uow_factory(readonly=True) as uow:
            payment = await uow.payment_repository.get_by_reference(session_id)
            order = await uow.order_repository.get_by_id(payment.order_id) if payment else None
        if payment is None or order is None:
            raise PaymentNotFoundException(session_id)
        return order, payment

    @staticmethod
    def _check_owner(order: Order, actor_id: Optional[int], is_admin: bool) -> None:
        if actor_id is not None and not is_admin and order.buyer_id != actor_id:
            raise ForbiddenException("Not the owner of this order")

    async def confirm_checkout(
        self,
        session_id: str,
        *,
        actor_id: Optional[int] = None,
        is_admin: bool = False,
    ) -> RedirectResult:
        """成功回跳：webhook 尚未到达时主动查询会话并走同一条幂等完成路径"""
        order, payment = await self._load(session_id)
        self._check_owner(order, actor_id, is_admin)

        if payment.status != PaymentStatus.PENDING:
            outcome = WebhookOutcome.DUPLICATE if payment.status == PaymentStatus.COMPLETED else WebhookOutcome.IGNORED
        elif self._provider is None:
            raise PaymentProviderNotConfiguredError(payment_settings.default_provider)
        else:
            session = await self._provider.retrieve_checkout_session(session_id)
            if session.payment_status in PAID_SESSION_STATUSES:
                outcome, _ = await self._fulfillment.complete_by_reference(
                    session_id, payment_intent_ref=session.payment_intent
                )
            else:
                logger.info(
                    "checkout_session_unpaid",
                    session_id=session_id,
                    order_id=order.id,
                    payment_status=session.payment_status,
                )
                outcome = WebhookOutcome.IGNORED
            order, payment = await self._load(session_id)

        return RedirectResult(
            session_id=session_id,
            order_id=order.id,
            order_status=order.status.value,
            payment_status=payment.status.value,
            outcome=outcome,
        )

    async def abandon_checkout(
        self,
        session_id: str,
        *,
        actor_id: Optional[int] = None,
        is_admin: bool = False,
    ) -> RedirectResult:
        """取消回跳：仍为 PENDING 的订单与支付一并取消，其它状态原样返回"""
        order, payment = await self._load(session_id)
        self._check_owner(order, actor_id, is_admin)

        if payment.status == PaymentStatus.PENDING:
            await self._orders.cancel_order(
                order.id, actor_id=actor_id if actor_id is not None else order.buyer_id, is_admin=True
            )
            outcome = WebhookOutcome.PROCESSED
            order, payment = await self._load(session_id)
        elif payment.status == PaymentStatus.CANCELLED:
            outcome = WebhookOutcome.DUPLICATE
        else:
            outcome = WebhookOutcome.IGNORED

        return RedirectResult(
            session_id=session_id,
            order_id=order.id,
            order_status=order.status.value,
            payment_status=payment.status.value,
            outcome=outcome,
        )
