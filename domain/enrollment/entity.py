"""
报名与证书实体
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid

from domain.catalog.entity import Course


class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"


@dataclass
class Enrollment:
    """
    报名记录

    业务规则：同一买家同一课程至多一条有效报名（由数据库唯一约束保证）
    """

    id: Optional[int]
    buyer_id: int
    course_id: int
    price: Decimal
    payment_id: Optional[int]  # 免费课程为空
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    enrollment_date: Optional[datetime] = None

    @classmethod
    def grant(cls, buyer_id: int, course_id: int, price: Decimal, payment_id: Optional[int] = None) -> "Enrollment":
        return cls(
            id=None,
            buyer_id=buyer_id,
            course_id=course_id,
            price=price,
            payment_id=payment_id,
            status=EnrollmentStatus.ACTIVE,
            enrollment_date=datetime.now(timezone.utc),
        )


@dataclass
class Certificate:
    """课程证书，签发后不可修改，仅在退款时删除"""

    id: Optional[int]
    buyer_id: int
    course_id: int
    certificate_number: str
    title: str
    instructor_name: Optional[str] = None
    issue_date: Optional[datetime] = None

    @classmethod
    def issue(cls, buyer_id: int, course: Course) -> "Certificate":
        return cls(
            id=None,
            buyer_id=buyer_id,
            course_id=course.id,
            certificate_number=f"CERT-{uuid.uuid4().hex[:12].upper()}",
            title=course.title,
            instructor_name=course.instructor_name,
            issue_date=datetime.now(timezone.utc),
        )
