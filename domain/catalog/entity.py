"""
课程只读视图 - 购买流程只关心价格、折扣与证书配置
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class CourseStatus(str, Enum):
    DRAFT = "DRAFT"
    REVIEW = "REVIEW"
    PUBLISHED = "PUBLISHED"
    UNPUBLISHED = "UNPUBLISHED"
    ARCHIVED = "ARCHIVED"


@dataclass(frozen=True)
class Course:
    id: int
    title: str
    price: Decimal
    discount: Decimal
    has_certificate: bool
    status: CourseStatus
    instructor_id: Optional[int] = None
    instructor_name: Optional[str] = None
    subtitle: Optional[str] = None

    def is_purchasable(self) -> bool:
        """只有已发布的课程可以购买"""
        return self.status == CourseStatus.PUBLISHED
