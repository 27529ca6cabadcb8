"""
支付仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional, List, Dict
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_

from domain.payment.entity import Payment, PaymentStatus, PaymentMethod
from domain.payment.repository import PaymentRepository
from infrastructure.models.payment import PaymentModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyPaymentRepository(PaymentRepository):
    """支付仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentModel) -> Payment:
        """将数据库模型转换为领域实体"""
        return Payment(
            id=model.id,
            order_id=model.order_id,
            buyer_id=model.buyer_id,
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            method=PaymentMethod(model.method),
            status=PaymentStatus(model.status),
            transaction_ref=model.transaction_ref,
            payment_intent_ref=model.payment_intent_ref,
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
            cancelled_at=model.cancelled_at,
            refunded_at=model.refunded_at,
        )

    def _to_model(self, entity: Payment) -> PaymentModel:
        """将领域实体转换为数据库模型"""
        return PaymentModel(
            order_id=entity.order_id,
            buyer_id=entity.buyer_id,
            amount=entity.amount,
            currency=entity.currency,
            method=entity.method.value,
            status=entity.status.value,
            transaction_ref=entity.transaction_ref,
            payment_intent_ref=entity.payment_intent_ref,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            paid_at=entity.paid_at,
            cancelled_at=entity.cancelled_at,
            refunded_at=entity.refunded_at,
        )

    async def create(self, payment: Payment) -> Payment:
        """创建支付记录（order_id 唯一约束冲突由调用方决定如何处理）"""
        db_payment = self._to_model(payment)
        self.session.add(db_payment)
        await self.session.flush()
        await self.session.refresh(db_payment)
        logger.info(
            "payment_created",
            payment_id=db_payment.id,
            order_id=db_payment.order_id,
            method=db_payment.method,
            amount=str(db_payment.amount),
        )
        return self._to_entity(db_payment)

    async def get_by_id(self, payment_id: int) -> Optional[Payment]:
        result = await self.session.execute(
            select(PaymentModel).where(PaymentModel.id == payment_id)
        )
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def get_by_order_id(self, order_id: int, *, for_update: bool = False) -> Optional[Payment]:
        query = select(PaymentModel).where(PaymentModel.order_id == order_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def get_by_reference(self, reference: str, *, for_update: bool = False) -> Optional[Payment]:
        """按 session ID 或扣款ID 定位支付，并可锁定该行"""
        query = (
            select(PaymentModel)
            .where(
                or_(
                    PaymentModel.transaction_ref == reference,
                    PaymentModel.payment_intent_ref == reference,
                )
            )
            .limit(1)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def list_by_order_ids(self, order_ids: List[int]) -> Dict[int, Payment]:
        if not order_ids:
            return {}
        result = await self.session.execute(
            select(PaymentModel).where(PaymentModel.order_id.in_(order_ids))
        )
        return {p.order_id: self._to_entity(p) for p in result.scalars().all()}

    async def set_transaction_ref(self, payment_id: int, transaction_ref: str) -> bool:
        result = await self.session.execute(
            update(PaymentModel)
            .where(
                PaymentModel.id == payment_id,
                PaymentModel.status == PaymentStatus.PENDING.value,
            )
            .values(transaction_ref=transaction_ref)
        )
        if result.rowcount > 0:
            logger.info("payment_reference_attached", payment_id=payment_id, transaction_ref=transaction_ref)
            return True
        return False

    async def save_transition(self, payment: Payment, expected: PaymentStatus) -> bool:
        """条件更新：rowcount 为 0 说明状态已被并发事务改变"""
        values = dict(
            status=payment.status.value,
            updated_at=payment.updated_at,
            paid_at=payment.paid_at,
            cancelled_at=payment.cancelled_at,
            refunded_at=payment.refunded_at,
        )
        if payment.payment_intent_ref:
            values["payment_intent_ref"] = payment.payment_intent_ref
        result = await self.session.execute(
            update(PaymentModel)
            .where(
                PaymentModel.id == payment.id,
                PaymentModel.status == expected.value,
            )
            .values(**values)
        )
        if result.rowcount > 0:
            logger.info(
                "payment_status_changed",
                payment_id=payment.id,
                order_id=payment.order_id,
                from_status=expected.value,
                to_status=payment.status.value,
            )
            return True
        return False
