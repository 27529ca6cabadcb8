"""
支付数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime,
    Index, ForeignKey
)

from .base import Base, utcnow


class PaymentModel(Base):
    """
    支付数据库模型

    transaction_ref / payment_intent_ref 的唯一约束是 webhook 幂等的基础；
    所有业务规则都在 domain.payment.entity.Payment 中
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)

    # 一个订单一笔支付
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        comment="订单ID"
    )
    buyer_id = Column(Integer, nullable=False, index=True, comment="买家ID")

    amount = Column(Numeric(precision=10, scale=2), nullable=False, comment="支付金额")
    currency = Column(String(3), nullable=False, default="EUR", comment="货币代码 ISO-4217")
    method = Column(String(20), nullable=False, comment="支付方式: stripe/direct")

    status = Column(
        String(20),
        nullable=False,
        default="PENDING",
        index=True,
        comment="支付状态: PENDING/COMPLETED/CANCELLED/REFUNDED"
    )

    # 渠道引用
    transaction_ref = Column(String(255), unique=True, nullable=True, comment="收银台 session ID")
    payment_intent_ref = Column(String(255), unique=True, nullable=True, comment="渠道扣款ID")

    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="更新时间"
    )
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="支付完成时间")
    cancelled_at = Column(DateTime(timezone=True), nullable=True, comment="取消时间")
    refunded_at = Column(DateTime(timezone=True), nullable=True, comment="退款时间")

    __table_args__ = (
        Index("ix_payments_buyer_status", "buyer_id", "status"),
    )

    def __repr__(self):
        return (
            f"<PaymentModel(id={self.id}, order_id={self.order_id}, "
            f"method='{self.method}', amount={self.amount}, status='{self.status}')>"
        )
