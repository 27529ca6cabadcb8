"""
报名/证书仓储接口
"""
from abc import ABC, abstractmethod
from typing import Optional, List

from .entity import Enrollment, Certificate


class EnrollmentRepository(ABC):

    @abstractmethod
    async def add_if_absent(self, enrollment: Enrollment) -> bool:
        """插入报名；(buyer_id, course_id) 已存在时不做任何事并返回 False"""
        pass

    @abstractmethod
    async def get(self, buyer_id: int, course_id: int) -> Optional[Enrollment]:
        pass

    @abstractmethod
    async def list_enrolled_course_ids(self, buyer_id: int, course_ids: List[int]) -> List[int]:
        """返回 course_ids 中买家已报名的课程ID"""
        pass

    @abstractmethod
    async def count_for(self, buyer_id: int, course_id: int) -> int:
        pass

    @abstractmethod
    async def delete(self, buyer_id: int, course_id: int, *, payment_id: Optional[int] = None) -> bool:
        """删除报名，不存在时返回 False（幂等）

        指定 payment_id 时只删除由该笔支付开通的报名。
        """
        pass


class CertificateRepository(ABC):

    @abstractmethod
    async def add_if_absent(self, certificate: Certificate) -> bool:
        """签发证书；(buyer_id, course_id) 已存在时返回 False"""
        pass

    @abstractmethod
    async def get(self, buyer_id: int, course_id: int) -> Optional[Certificate]:
        pass

    @abstractmethod
    async def delete(self, buyer_id: int, course_id: int) -> bool:
        """删除证书，不存在时返回 False（幂等）"""
        pass
