"""
报名与证书数据库模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime,
    ForeignKey, UniqueConstraint
)

from .base import Base, utcnow


class EnrollmentModel(Base):
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, nullable=False, index=True, comment="买家ID")
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True, comment="课程ID")
    price = Column(Numeric(precision=10, scale=2), nullable=False, default=0, comment="实付单价")
    payment_id = Column(
        Integer,
        ForeignKey("payments.id", ondelete="SET NULL"),
        nullable=True,
        comment="支付ID（免费课程为空）"
    )
    status = Column(String(20), nullable=False, default="ACTIVE", comment="报名状态")
    enrollment_date = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="报名时间"
    )

    __table_args__ = (
        UniqueConstraint("buyer_id", "course_id", name="uq_enrollments_buyer_course"),
    )


class CertificateModel(Base):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, nullable=False, index=True, comment="买家ID")
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, comment="课程ID")
    certificate_number = Column(String(50), unique=True, nullable=False, comment="证书编号")
    title = Column(String(255), nullable=False, comment="证书标题（课程标题）")
    instructor_name = Column(String(200), nullable=True, comment="讲师姓名")
    issue_date = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="签发时间"
    )

    __table_args__ = (
        UniqueConstraint("buyer_id", "course_id", name="uq_certificates_buyer_course"),
    )
