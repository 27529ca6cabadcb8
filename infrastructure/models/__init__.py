"""Infrastructure models package exports."""
from .base import Base, metadata
from .course import CourseModel
from .order import OrderModel, OrderItemModel
from .payment import PaymentModel
from .enrollment import EnrollmentModel, CertificateModel
from .invoice import InvoiceModel

__all__ = [
    "Base",
    "metadata",
    "CourseModel",
    "OrderModel",
    "OrderItemModel",
    "PaymentModel",
    "EnrollmentModel",
    "CertificateModel",
    "InvoiceModel",
]
