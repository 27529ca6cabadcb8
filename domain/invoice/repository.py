"""
发票仓储接口
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict

from .entity import Invoice


class InvoiceRepository(ABC):

    @abstractmethod
    async def create(self, invoice: Invoice) -> Invoice:
        """创建发票（order_id 唯一）"""
        pass

    @abstractmethod
    async def get_by_order_id(self, order_id: int) -> Optional[Invoice]:
        pass

    @abstractmethod
    async def list_by_order_ids(self, order_ids: List[int]) -> Dict[int, Invoice]:
        pass

    @abstractmethod
    async def mark_refunded(self, order_id: int) -> bool:
        """将发票状态改为 REFUNDED；已是 REFUNDED 或不存在时返回 False"""
        pass
