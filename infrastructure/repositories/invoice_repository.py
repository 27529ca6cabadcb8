"""
发票仓储实现
"""
from decimal import Decimal
from datetime import timezone
from typing import Optional, List, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from domain.invoice.entity import Invoice, InvoiceStatus
from domain.invoice.repository import InvoiceRepository
from infrastructure.models.invoice import InvoiceModel
from core.logging_config import get_logger


logger = get_logger(__name__)


def _utc(dt):
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class SQLAlchemyInvoiceRepository(InvoiceRepository):
    """发票仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: InvoiceModel) -> Invoice:
        return Invoice(
            id=model.id,
            order_id=model.order_id,
            buyer_id=model.buyer_id,
            total_amount=Decimal(str(model.total_amount)),
            tax_amount=Decimal(str(model.tax_amount)),
            discount=Decimal(str(model.discount)),
            final_amount=Decimal(str(model.final_amount)),
            status=InvoiceStatus(model.status),
            issue_date=_utc(model.issue_date),
            due_date=_utc(model.due_date),
            billing_address=model.billing_address,
        )

    async def create(self, invoice: Invoice) -> Invoice:
        db_invoice = InvoiceModel(
            order_id=invoice.order_id,
            buyer_id=invoice.buyer_id,
            total_amount=invoice.total_amount,
            tax_amount=invoice.tax_amount,
            discount=invoice.discount,
            final_amount=invoice.final_amount,
            status=invoice.status.value,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            billing_address=invoice.billing_address,
        )
        self.session.add(db_invoice)
        await self.session.flush()
        logger.info(
            "invoice_created",
            invoice_id=db_invoice.id,
            order_id=db_invoice.order_id,
            final_amount=str(db_invoice.final_amount),
        )
        return self._to_entity(db_invoice)

    async def get_by_order_id(self, order_id: int) -> Optional[Invoice]:
        result = await self.session.execute(
            select(InvoiceModel).where(InvoiceModel.order_id == order_id)
        )
        db_invoice = result.scalar_one_or_none()
        return self._to_entity(db_invoice) if db_invoice else None

    async def list_by_order_ids(self, order_ids: List[int]) -> Dict[int, Invoice]:
        if not order_ids:
            return {}
        result = await self.session.execute(
            select(InvoiceModel).where(InvoiceModel.order_id.in_(order_ids))
        )
        return {i.order_id: self._to_entity(i) for i in result.scalars().all()}

    async def mark_refunded(self, order_id: int) -> bool:
        result = await self.session.execute(
            update(InvoiceModel)
            .where(
                InvoiceModel.order_id == order_id,
                InvoiceModel.status == InvoiceStatus.PAID.value,
            )
            .values(status=InvoiceStatus.REFUNDED.value)
        )
        if result.rowcount > 0:
            logger.info("invoice_refunded", order_id=order_id)
            return True
        return False
