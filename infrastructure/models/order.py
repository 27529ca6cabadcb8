"""
订单数据库模型 - SQLAlchemy ORM模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, JSON,
    Index, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class OrderModel(Base):
    """
    订单数据库模型

    所有业务规则都在 domain.order.entity.Order 中
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, nullable=False, index=True, comment="买家ID")

    # 金额信息（下单时快照）
    total_amount = Column(Numeric(precision=10, scale=2), nullable=False, comment="原价合计")
    discount = Column(Numeric(precision=10, scale=2), nullable=False, default=0, comment="折扣合计")
    tax = Column(Numeric(precision=10, scale=2), nullable=False, default=0, comment="税额")
    final_amount = Column(Numeric(precision=10, scale=2), nullable=False, comment="应付金额")
    currency = Column(String(3), nullable=False, default="EUR", comment="货币代码 ISO-4217")

    status = Column(
        String(20),
        nullable=False,
        default="PENDING",
        index=True,
        comment="订单状态: PENDING/COMPLETED/CANCELLED/REFUNDED"
    )
    billing_address = Column(JSON, nullable=True, comment="账单地址")

    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="更新时间"
    )

    items = relationship("OrderItemModel", back_populates="order", lazy="select")

    __table_args__ = (
        Index("ix_orders_buyer_status", "buyer_id", "status"),
    )

    def __repr__(self):
        return (
            f"<OrderModel(id={self.id}, buyer_id={self.buyer_id}, "
            f"final_amount={self.final_amount}, status='{self.status}')>"
        )


class OrderItemModel(Base):
    """订单项 - 每门课程一行，价格与折扣为下单时快照"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="订单ID"
    )
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True, comment="课程ID")
    title = Column(String(255), nullable=True, comment="课程标题快照")
    price = Column(Numeric(precision=10, scale=2), nullable=False, comment="价格快照")
    discount = Column(Numeric(precision=10, scale=2), nullable=False, default=0, comment="折扣快照")

    order = relationship("OrderModel", back_populates="items")

    __table_args__ = (
        UniqueConstraint("order_id", "course_id", name="uq_order_items_order_course"),
    )
