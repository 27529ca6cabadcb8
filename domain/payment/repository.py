"""
支付仓储接口 - 定义支付数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict

from .entity import Payment, PaymentStatus


class PaymentRepository(ABC):
    """支付仓储抽象接口"""

    @abstractmethod
    async def create(self, payment: Payment) -> Payment:
        """创建支付记录"""
        pass

    @abstractmethod
    async def get_by_id(self, payment_id: int) -> Optional[Payment]:
        """根据ID获取支付"""
        pass

    @abstractmethod
    async def get_by_order_id(self, order_id: int, *, for_update: bool = False) -> Optional[Payment]:
        """根据订单ID获取支付（一个订单一笔支付）"""
        pass

    @abstractmethod
    async def get_by_reference(self, reference: str, *, for_update: bool = False) -> Optional[Payment]:
        """根据收银台 session ID 或渠道扣款ID获取支付；for_update=True 时锁定支付行"""
        pass

    @abstractmethod
    async def list_by_order_ids(self, order_ids: List[int]) -> Dict[int, Payment]:
        """批量获取订单对应的支付"""
        pass

    @abstractmethod
    async def set_transaction_ref(self, payment_id: int, transaction_ref: str) -> bool:
        """为仍处于 PENDING 的支付写入收银台 session ID"""
        pass

    @abstractmethod
    async def save_transition(self, payment: Payment, expected: PaymentStatus) -> bool:
        """条件写入状态转换：仅当库中状态仍为 expected 时更新，返回是否更新成功"""
        pass
