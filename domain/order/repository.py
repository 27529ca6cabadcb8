"""
订单仓储接口 - 定义订单数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Dict

from .entity import Order, OrderItem, OrderStatus


class OrderRepository(ABC):
    """订单仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """创建订单及订单项"""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: int, *, for_update: bool = False) -> Optional[Order]:
        """根据ID获取订单（含订单项）；for_update=True 时锁定订单行"""
        pass

    @abstractmethod
    async def list_items_for_order(self, order_id: int) -> List[OrderItem]:
        """获取订单项"""
        pass

    @abstractmethod
    async def list_items_for_orders(self, order_ids: List[int]) -> Dict[int, List[OrderItem]]:
        """批量获取多个订单的订单项"""
        pass

    @abstractmethod
    async def transition_status(
        self,
        order_id: int,
        expected: OrderStatus,
        new_status: OrderStatus,
    ) -> bool:
        """条件更新状态：仅当当前状态仍为 expected 时才写入，返回是否更新成功"""
        pass

    @abstractmethod
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
        """按条件分页查询订单（不加载订单项）"""
        pass

    @abstractmethod
    async def count_orders(
        self,
        *,
        buyer_id: Optional[int] = None,
        status: Optional[OrderStatus] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> int:
        """统计符合条件的订单数量"""
        pass
