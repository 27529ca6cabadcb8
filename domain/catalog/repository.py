"""
课程查询接口 - 课程内容管理不属于本服务，这里只定义购买所需的查询
"""
from abc import ABC, abstractmethod
from typing import Optional, List

from .entity import Course


class CourseRepository(ABC):

    @abstractmethod
    async def get_by_id(self, course_id: int) -> Optional[Course]:
        """根据ID获取课程"""
        pass

    @abstractmethod
    async def list_by_ids(self, course_ids: List[int]) -> List[Course]:
        """批量获取课程（不保证顺序，缺失的ID直接忽略）"""
        pass
