"""
报名/证书仓储实现

(buyer_id, course_id) 唯一约束冲突在 SAVEPOINT 内被吸收，
外层履约事务不受影响。
"""
from decimal import Decimal
from datetime import timezone
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError

from domain.enrollment.entity import Enrollment, EnrollmentStatus, Certificate
from domain.enrollment.repository import EnrollmentRepository, CertificateRepository
from infrastructure.models.enrollment import EnrollmentModel, CertificateModel
from core.logging_config import get_logger


logger = get_logger(__name__)


def _utc(dt):
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


async def _insert_if_absent(session: AsyncSession, model) -> bool:
    try:
        async with session.begin_nested():
            session.add(model)
            await session.flush()
    except IntegrityError:
        return False
    return True


class SQLAlchemyEnrollmentRepository(EnrollmentRepository):
    """报名仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: EnrollmentModel) -> Enrollment:
        return Enrollment(
            id=model.id,
            buyer_id=model.buyer_id,
            course_id=model.course_id,
            price=Decimal(str(model.price)),
            payment_id=model.payment_id,
            status=EnrollmentStatus(model.status),
            enrollment_date=_utc(model.enrollment_date),
        )

    async def add_if_absent(self, enrollment: Enrollment) -> bool:
        created = await _insert_if_absent(
            self.session,
            EnrollmentModel(
                buyer_id=enrollment.buyer_id,
                course_id=enrollment.course_id,
                price=enrollment.price,
                payment_id=enrollment.payment_id,
                status=enrollment.status.value,
                enrollment_date=enrollment.enrollment_date,
            ),
        )
        if created:
            logger.info(
                "enrollment_created",
                buyer_id=enrollment.buyer_id,
                course_id=enrollment.course_id,
                payment_id=enrollment.payment_id,
            )
        else:
            logger.info("enrollment_exists", buyer_id=enrollment.buyer_id, course_id=enrollment.course_id)
        return created

    async def get(self, buyer_id: int, course_id: int) -> Optional[Enrollment]:
        result = await self.session.execute(
            select(EnrollmentModel).where(
                EnrollmentModel.buyer_id == buyer_id,
                EnrollmentModel.course_id == course_id,
            )
        )
        db_enrollment = result.scalar_one_or_none()
        return self._to_entity(db_enrollment) if db_enrollment else None

    async def list_enrolled_course_ids(self, buyer_id: int, course_ids: List[int]) -> List[int]:
        if not course_ids:
            return []
        result = await self.session.execute(
            select(EnrollmentModel.course_id).where(
                EnrollmentModel.buyer_id == buyer_id,
                EnrollmentModel.course_id.in_(course_ids),
            )
        )
        return [row[0] for row in result.all()]

    async def count_for(self, buyer_id: int, course_id: int) -> int:
        result = await self.session.execute(
            select(func.count(EnrollmentModel.id)).where(
                EnrollmentModel.buyer_id == buyer_id,
                EnrollmentModel.course_id == course_id,
            )
        )
        return result.scalar_one()

    async def delete(self, buyer_id: int, course_id: int, *, payment_id: Optional[int] = None) -> bool:
        stmt = delete(EnrollmentModel).where(
            EnrollmentModel.buyer_id == buyer_id,
            EnrollmentModel.course_id == course_id,
        )
        if payment_id is not None:
            stmt = stmt.where(EnrollmentModel.payment_id == payment_id)
        result = await self.session.execute(stmt)
        if result.rowcount > 0:
            logger.info("enrollment_deleted", buyer_id=buyer_id, course_id=course_id, payment_id=payment_id)
            return True
        return False


class SQLAlchemyCertificateRepository(CertificateRepository):
    """证书仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: CertificateModel) -> Certificate:
        return Certificate(
            id=model.id,
            buyer_id=model.buyer_id,
            course_id=model.course_id,
            certificate_number=model.certificate_number,
            title=model.title,
            instructor_name=model.instructor_name,
            issue_date=_utc(model.issue_date),
        )

    async def add_if_absent(self, certificate: Certificate) -> bool:
        created = await _insert_if_absent(
            self.session,
            CertificateModel(
                buyer_id=certificate.buyer_id,
                course_id=certificate.course_id,
                certificate_number=certificate.certificate_number,
                title=certificate.title,
                instructor_name=certificate.instructor_name,
                issue_date=certificate.issue_date,
            ),
        )
        if created:
            logger.info(
                "certificate_issued",
                buyer_id=certificate.buyer_id,
                course_id=certificate.course_id,
                certificate_number=certificate.certificate_number,
            )
        return created

    async def get(self, buyer_id: int, course_id: int) -> Optional[Certificate]:
        result = await self.session.execute(
            select(CertificateModel).where(
                CertificateModel.buyer_id == buyer_id,
                CertificateModel.course_id == course_id,
            )
        )
        db_certificate = result.scalar_one_or_none()
        return self._to_entity(db_certificate) if db_certificate else None

    async def delete(self, buyer_id: int, course_id: int) -> bool:
        result = await self.session.execute(
            delete(CertificateModel).where(
                CertificateModel.buyer_id == buyer_id,
                CertificateModel.course_id == course_id,
            )
        )
        if result.rowcount > 0:
            logger.info("certificate_revoked", buyer_id=buyer_id, course_id=course_id)
            return True
        return False
