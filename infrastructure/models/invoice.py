"""
发票数据库模型
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON, ForeignKey

from .base import Base


class InvoiceModel(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        comment="订单ID（一单一票）"
    )
    buyer_id = Column(Integer, nullable=False, index=True, comment="买家ID")

    total_amount = Column(Numeric(precision=10, scale=2), nullable=False, comment="原价合计")
    tax_amount = Column(Numeric(precision=10, scale=2), nullable=False, default=0, comment="税额")
    discount = Column(Numeric(precision=10, scale=2), nullable=False, default=0, comment="折扣")
    final_amount = Column(Numeric(precision=10, scale=2), nullable=False, comment="实付金额")

    status = Column(String(20), nullable=False, default="PAID", comment="PAID/REFUNDED")
    issue_date = Column(DateTime(timezone=True), nullable=False, comment="开票时间")
    due_date = Column(DateTime(timezone=True), nullable=False, comment="到期时间")
    billing_address = Column(JSON, nullable=True, comment="账单地址")
