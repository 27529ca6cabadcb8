"""
支付领域实体 - 与订单一一对应的支付记录
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from enum import Enum

from domain.common.exceptions import DomainValidationException
from domain.order.entity import Order


class PaymentStatus(str, Enum):
    """支付状态枚举"""
    PENDING = "PENDING"        # 待支付
    COMPLETED = "COMPLETED"    # 支付成功
    CANCELLED = "CANCELLED"    # 已取消
    REFUNDED = "REFUNDED"      # 已退款


class PaymentMethod(str, Enum):
    """支付方式"""
    HOSTED_CHECKOUT = "stripe"   # 跳转第三方托管收银台，结果通过 webhook 回传
    DIRECT = "direct"            # 同步（模拟/人工）扣款


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class Payment:
    """
    支付实体 - 管理支付生命周期

    业务规则：
    1. 一个订单只有一笔支付
    2. 金额必须等于订单 final_amount 且大于0（免费课程不产生支付）
    3. transaction_ref（收银台 session ID）存在时必须唯一，是 webhook 幂等键
    4. 状态转换：PENDING -> COMPLETED/CANCELLED，COMPLETED -> REFUNDED
    """

    id: Optional[int]
    order_id: int
    buyer_id: int
    amount: Decimal
    currency: str  # ISO-4217
    method: PaymentMethod
    status: PaymentStatus
    transaction_ref: Optional[str] = None      # 收银台 session ID
    payment_intent_ref: Optional[str] = None   # 渠道扣款ID（退款事件通过它定位支付）

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None

    def __post_init__(self):
        self._validate_amount()
        self._validate_currency()
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.paid_at = _ensure_utc(self.paid_at)
        self.cancelled_at = _ensure_utc(self.cancelled_at)
        self.refunded_at = _ensure_utc(self.refunded_at)

    @classmethod
    def for_order(cls, order: Order, method: PaymentMethod) -> "Payment":
        now = datetime.now(timezone.utc)
        return cls(
            id=None,
            order_id=order.id,
            buyer_id=order.buyer_id,
            amount=order.final_amount,
            currency=order.currency,
            method=method,
            status=PaymentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    def _validate_amount(self) -> None:
        if self.amount <= 0:
            raise DomainValidationException(
                f"Payment amount must be greater than 0: {self.amount}",
                field="amount",
            )

    def _validate_currency(self) -> None:
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(
                f"Invalid currency code: {self.currency}",
                field="currency",
            )

    def _transition(self, allowed: tuple[PaymentStatus, ...], target: PaymentStatus) -> PaymentStatus:
        if self.status not in allowed:
            raise DomainValidationException(
                f"Cannot transition payment from {self.status.value} to {target.value}",
                field="status",
            )
        previous = self.status
        self.status = target
        self.updated_at = datetime.now(timezone.utc)
        return previous

    def mark_completed(self, payment_intent_ref: Optional[str] = None) -> PaymentStatus:
        """标记支付成功，返回转换前的状态（供条件更新使用）"""
        previous = self._transition((PaymentStatus.PENDING,), PaymentStatus.COMPLETED)
        if payment_intent_ref:
            self.payment_intent_ref = payment_intent_ref
        self.paid_at = self.updated_at
        return previous

    def mark_cancelled(self) -> PaymentStatus:
        previous = self._transition((PaymentStatus.PENDING,), PaymentStatus.CANCELLED)
        self.cancelled_at = self.updated_at
        return previous

    def mark_refunded(self) -> PaymentStatus:
        previous = self._transition((PaymentStatus.COMPLETED,), PaymentStatus.REFUNDED)
        self.refunded_at = self.updated_at
        return previous

    def matches_order(self, order: Order) -> bool:
        return self.order_id == order.id and self.amount == order.final_amount
