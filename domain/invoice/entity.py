"""
发票实体 - 与订单一一对应
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.order.entity import Order


class InvoiceStatus(str, Enum):
    PAID = "PAID"
    REFUNDED = "REFUNDED"


@dataclass
class Invoice:
    id: Optional[int]
    order_id: int
    buyer_id: int
    total_amount: Decimal
    tax_amount: Decimal
    discount: Decimal
    final_amount: Decimal
    status: InvoiceStatus
    issue_date: datetime
    due_date: datetime
    billing_address: Optional[dict] = None

    @classmethod
    def for_order(cls, order: Order, *, due_days: int = 30) -> "Invoice":
        """金额在签发时从订单镜像，之后不再随订单变化"""
        issued = datetime.now(timezone.utc)
        return cls(
            id=None,
            order_id=order.id,
            buyer_id=order.buyer_id,
            total_amount=order.total_amount,
            tax_amount=order.tax,
            discount=order.discount,
            final_amount=order.final_amount,
            status=InvoiceStatus.PAID,
            issue_date=issued,
            due_date=issued + timedelta(days=due_days),
            billing_address=order.billing_address,
        )
