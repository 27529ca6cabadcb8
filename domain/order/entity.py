"""
订单领域实体 - 订单聚合根与订单项（价格快照）
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from domain.common.exceptions import DomainValidationException, OrderNotCancellableException
from .pricing import PriceQuote, ZERO


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "PENDING"       # 待支付
    COMPLETED = "COMPLETED"   # 已支付并完成交付
    CANCELLED = "CANCELLED"   # 已取消
    REFUNDED = "REFUNDED"     # 已退款


@dataclass
class OrderItem:
    """订单项 - 下单时的不可变价格快照"""

    id: Optional[int]
    order_id: Optional[int]
    course_id: int
    price: Decimal
    discount: Decimal
    title: Optional[str] = None

    @property
    def net_amount(self) -> Decimal:
        return self.price - self.discount


@dataclass
class Order:
    """
    订单聚合根

    业务规则：
    1. final_amount = sum(item.price - item.discount)，且不小于0
    2. 只有 PENDING 状态的订单可以取消
    3. COMPLETED 之后只允许转为 REFUNDED
    """

    id: Optional[int]
    buyer_id: int
    total_amount: Decimal
    discount: Decimal
    tax: Decimal
    final_amount: Decimal
    currency: str
    status: OrderStatus
    items: List[OrderItem] = field(default_factory=list)
    billing_address: Optional[dict] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_quote(
        cls,
        buyer_id: int,
        quote: PriceQuote,
        currency: str,
        billing_address: Optional[dict] = None,
    ) -> "Order":
        if not quote.lines:
            raise DomainValidationException("Order must contain at least one item", field="items")
        now = datetime.now(timezone.utc)
        items = [
            OrderItem(
                id=None,
                order_id=None,
                course_id=line.course_id,
                price=line.price,
                discount=line.discount,
                title=line.title,
            )
            for line in quote.lines
        ]
        return cls(
            id=None,
            buyer_id=buyer_id,
            total_amount=quote.total_amount,
            discount=quote.discount,
            tax=quote.tax,
            final_amount=quote.final_amount,
            currency=currency.upper(),
            status=OrderStatus.PENDING,
            items=items,
            billing_address=billing_address,
            created_at=now,
            updated_at=now,
        )

    @property
    def course_ids(self) -> List[int]:
        return [item.course_id for item in self.items]

    def expected_final_amount(self) -> Decimal:
        net = sum((item.net_amount for item in self.items), ZERO) + self.tax
        return max(net, ZERO)

    def is_pending(self) -> bool:
        return self.status == OrderStatus.PENDING

    def ensure_cancellable(self) -> None:
        """业务规则：已完成或已退款的订单不可取消"""
        if self.status in (OrderStatus.COMPLETED, OrderStatus.REFUNDED):
            raise OrderNotCancellableException(self.id or 0, self.status.value)
