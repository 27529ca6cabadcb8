"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    """输入不合法（缺少字段、空订单、课程不可购买等）"""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="ValidationError",
            details=details,
            field=field,
        )


class ForbiddenException(BusinessException):
    """非资源所有者或非管理员"""

    def __init__(self, message: str = "Operation not permitted", *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message=message,
            error_type="AuthorizationError",
            details=details,
        )


class NotFoundException(BusinessException):
    """资源不存在（通用）"""

    resource = "Resource"

    def __init__(self, identifier: Optional[object] = None, *, details: Optional[dict] = None):
        if details is None and identifier is not None:
            details = {"id": identifier}
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message=f"{self.resource} not found",
            error_type="NotFoundError",
            details=details,
        )


class CourseNotFoundException(NotFoundException):
    resource = "Course"


class OrderNotFoundException(NotFoundException):
    resource = "Order"


class PaymentNotFoundException(NotFoundException):
    resource = "Payment"


class ConflictException(BusinessException):
    """状态冲突（已报名、订单不可取消等）"""

    def __init__(
        self,
        message: str,
        *,
        code: int = BusinessCode.CONFLICT,
        error_type: str = "ConflictError",
        details: Optional[dict] = None,
    ):
        super().__init__(code=code, message=message, error_type=error_type, details=details)


class AlreadyEnrolledException(ConflictException):
    def __init__(self, buyer_id: int, course_ids: list[int]):
        super().__init__(
            "already enrolled",
            code=BusinessCode.ALREADY_ENROLLED,
            error_type="AlreadyEnrolled",
            details={"buyer_id": buyer_id, "course_ids": course_ids},
        )


class OrderNotCancellableException(ConflictException):
    def __init__(self, order_id: int, status: str):
        super().__init__(
            f"Order {order_id} cannot be cancelled in status {status}",
            code=BusinessCode.ORDER_NOT_CANCELLABLE,
            error_type="OrderNotCancellable",
            details={"order_id": order_id, "status": status},
        )
