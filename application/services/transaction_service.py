"""
交易流水查询 - 只读报表接口
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, List

from application.dtos.checkout import TransactionDTO
from core.config import settings
from domain.common.exceptions import DomainValidationException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import OrderStatus


class TransactionService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def list_transactions(
        self,
        *,
        actor_id: int,
        is_admin: bool = False,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        size: Optional[int] = None,
    ) -> tuple[List[TransactionDTO], int]:
        """分页查询订单及其支付、发票、课程明细

        管理员可查看全部订单，普通用户仅能查看自己的订单。
        """
        size = min(size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        page = max(page, 1)
        order_status = None
        if status:
            try:
                order_status = OrderStatus(status.upper())
            except ValueError:
                raise DomainValidationException(f"Unknown order status: {status}", field="status")
        if date_from and date_to and date_from > date_to:
            raise DomainValidationException("date_from must not be after date_to", field="date_from")

        filters = dict(
            buyer_id=None if is_admin else actor_id,
            status=order_status,
            created_from=date_from,
            created_to=date_to,
        )
        async with self._uow_factory(readonly=True) as uow:
            total = await uow.order_repository.count_orders(**filters)
            orders = await uow.order_repository.list_orders(**filters, skip=(page - 1) * size, limit=size)
            order_ids = [o.id for o in orders]
            items = await uow.order_repository.list_items_for_orders(order_ids)
            payments = await uow.payment_repository.list_by_order_ids(order_ids)
            invoices = await uow.invoice_repository.list_by_order_ids(order_ids)

        results = []
        for order in orders:
            order.items = items.get(order.id, [])
            results.append(TransactionDTO.build(order, payments.get(order.id), invoices.get(order.id)))
        return results, total
