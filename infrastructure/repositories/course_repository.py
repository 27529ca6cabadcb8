"""
课程仓储实现 - 只读查询
"""
from decimal import Decimal
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from domain.catalog.entity import Course, CourseStatus
from domain.catalog.repository import CourseRepository
from infrastructure.models.course import CourseModel


class SQLAlchemyCourseRepository(CourseRepository):
    """课程仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: CourseModel) -> Course:
        return Course(
            id=model.id,
            title=model.title,
            price=Decimal(str(model.price or 0)),
            discount=Decimal(str(model.discount or 0)),
            has_certificate=bool(model.has_certificate),
            status=CourseStatus(model.status),
            instructor_id=model.instructor_id,
            instructor_name=model.instructor_name,
            subtitle=model.subtitle,
        )

    async def get_by_id(self, course_id: int) -> Optional[Course]:
        result = await self.session.execute(
            select(CourseModel).where(CourseModel.id == course_id)
        )
        db_course = result.scalar_one_or_none()
        return self._to_entity(db_course) if db_course else None

    async def list_by_ids(self, course_ids: List[int]) -> List[Course]:
        if not course_ids:
            return []
        result = await self.session.execute(
            select(CourseModel).where(CourseModel.id.in_(course_ids))
        )
        return [self._to_entity(c) for c in result.scalars().all()]
