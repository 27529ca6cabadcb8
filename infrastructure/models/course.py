"""
课程数据库模型 - 课程内容由课程管理服务维护，这里只映射购买所需的字段
"""
from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime

from .base import Base, utcnow


class CourseModel(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False, comment="课程标题")
    subtitle = Column(String(255), nullable=True, comment="副标题")

    price = Column(Numeric(precision=10, scale=2), nullable=False, default=0, comment="价格")
    discount = Column(Numeric(precision=10, scale=2), nullable=False, default=0, comment="折扣金额")
    has_certificate = Column(Boolean, nullable=False, default=False, comment="完成购买后是否签发证书")
    status = Column(String(20), nullable=False, default="DRAFT", index=True, comment="DRAFT/REVIEW/PUBLISHED/UNPUBLISHED/ARCHIVED")

    instructor_id = Column(Integer, nullable=True, index=True, comment="讲师ID")
    instructor_name = Column(String(200), nullable=True, comment="讲师姓名（证书展示用）")

    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="创建时间"
    )

    def __repr__(self):
        return f"<CourseModel(id={self.id}, title='{self.title}', price={self.price}, status='{self.status}')>"
