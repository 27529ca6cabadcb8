"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from domain.order.entity import Order, OrderItem, OrderStatus
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel, OrderItemModel
from core.logging_config import get_logger


logger = get_logger(__name__)


def _as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _item_to_entity(self, model: OrderItemModel) -> OrderItem:
        return OrderItem(
            id=model.id,
            order_id=model.order_id,
            course_id=model.course_id,
            price=Decimal(str(model.price)),
            discount=Decimal(str(model.discount)),
            title=model.title,
        )

    def _to_entity(self, model: OrderModel, items: Optional[List[OrderItem]] = None) -> Order:
        """将数据库模型转换为领域实体"""
        return Order(
            id=model.id,
            buyer_id=model.buyer_id,
            total_amount=Decimal(str(model.total_amount)),
            discount=Decimal(str(model.discount)),
            tax=Decimal(str(model.tax)),
            final_amount=Decimal(str(model.final_amount)),
            currency=model.currency,
            status=OrderStatus(model.status),
            items=items or [],
            billing_address=model.billing_address,
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
        )

    def _to_model(self, entity: Order) -> OrderModel:
        """将领域实体转换为数据库模型"""
        return OrderModel(
            buyer_id=entity.buyer_id,
            total_amount=entity.total_amount,
            discount=entity.discount,
            tax=entity.tax,
            final_amount=entity.final_amount,
            currency=entity.currency,
            status=entity.status.value,
            billing_address=entity.billing_address,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def create(self, order: Order) -> Order:
        """创建订单及订单项"""
        db_order = self._to_model(order)
        self.session.add(db_order)
        await self.session.flush()

        db_items = [
            OrderItemModel(
                order_id=db_order.id,
                course_id=item.course_id,
                title=item.title,
                price=item.price,
                discount=item.discount,
            )
            for item in order.items
        ]
        self.session.add_all(db_items)
        await self.session.flush()

        logger.info(
            "order_created",
            order_id=db_order.id,
            buyer_id=db_order.buyer_id,
            item_count=len(db_items),
            final_amount=str(db_order.final_amount),
        )
        return self._to_entity(db_order, [self._item_to_entity(i) for i in db_items])

    async def get_by_id(self, order_id: int, *, for_update: bool = False) -> Optional[Order]:
        query = select(OrderModel).where(OrderModel.id == order_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        db_order = result.scalar_one_or_none()
        if not db_order:
            return None
        return self._to_entity(db_order, await self.list_items_for_order(order_id))

    async def list_items_for_order(self, order_id: int) -> List[OrderItem]:
        result = await self.session.execute(
            select(OrderItemModel)
            .where(OrderItemModel.order_id == order_id)
            .order_by(OrderItemModel.id)
        )
        return [self._item_to_entity(i) for i in result.scalars().all()]

    async def list_items_for_orders(self, order_ids: List[int]) -> Dict[int, List[OrderItem]]:
        grouped: Dict[int, List[OrderItem]] = defaultdict(list)
        if not order_ids:
            return grouped
        result = await self.session.execute(
            select(OrderItemModel)
            .where(OrderItemModel.order_id.in_(order_ids))
            .order_by(OrderItemModel.id)
        )
        for db_item in result.scalars().all():
            grouped[db_item.order_id].append(self._item_to_entity(db_item))
        return grouped

    async def transition_status(
        self,
        order_id: int,
        expected: OrderStatus,
        new_status: OrderStatus,
    ) -> bool:
        """条件更新：WHERE status = expected，rowcount 为 0 表示已被其他事务处理"""
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == expected.value)
            .values(status=new_status.value, updated_at=datetime.now(timezone.utc))
        )
        if result.rowcount > 0:
            logger.info(
                "order_status_changed",
                order_id=order_id,
                from_status=expected.value,
                to_status=new_status.value,
            )
            return True
        return False

    def _filtered(self, query, buyer_id, status, created_from, created_to):
        if buyer_id is not None:
            query = query.where(OrderModel.buyer_id == buyer_id)
        if status is not None:
            query = query.where(OrderModel.status == status.value)
        if created_from is not None:
            query = query.where(OrderModel.created_at >= created_from)
        if created_to is not None:
            query = query.where(OrderModel.created_at <= created_to)
        return query

    async def list_orders(
        self,
        *,
        buyer_id: Optional[int] = None,
        status: Optional[OrderStatus] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> List[Order]:
        query = self._filtered(select(OrderModel), buyer_id, status, created_from, created_to)
        query = query.order_by(OrderModel.created_at.desc(), OrderModel.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return [self._to_entity(o) for o in result.scalars().all()]

    async def count_orders(
        self,
        *,
        buyer_id: Optional[int] = None,
        status: Optional[OrderStatus] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> int:
        query = self._filtered(
            select(func.count(OrderModel.id)), buyer_id, status, created_from, created_to
        )
        result = await self.session.execute(query)
        return result.scalar_one()
