"""
Checkout / fulfillment DTOs (Pydantic v2) returned by application services.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.enrollment.entity import Enrollment
from domain.invoice.entity import Invoice
from domain.order.entity import Order
from domain.payment.entity import Payment


class CheckoutRequest(BaseModel):
    course_ids: list[int] = Field(min_length=1)
    method: Literal["hosted", "direct"] = "hosted"
    billing_address: Optional[dict[str, Any]] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None

    @field_validator("course_ids")
    @classmethod
    def _dedupe(cls, v: list[int]) -> list[int]:
        return list(dict.fromkeys(v))


class EnrollmentDTO(BaseModel):
    course_id: int
    price: Decimal
    payment_id: Optional[int] = None
    status: str
    enrollment_date: Optional[datetime] = None

    @classmethod
    def from_entity(cls, enrollment: Enrollment) -> "EnrollmentDTO":
        return cls(
            course_id=enrollment.course_id,
            price=enrollment.price,
            payment_id=enrollment.payment_id,
            status=enrollment.status.value,
            enrollment_date=enrollment.enrollment_date,
        )


class PaymentHandle(BaseModel):
    """Result of PaymentGateway.initiate."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: int
    payment_id: int
    method: str
    status: str
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    redirect_url: Optional[str] = Field(default=None, alias="redirectUrl")
    enrollments: list[EnrollmentDTO] = Field(default_factory=list)
    invoice_id: Optional[int] = None


class CheckoutResult(BaseModel):
    """What POST /checkout returns: a redirect for hosted, enrollments otherwise."""

    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["free", "hosted", "direct"]
    order_id: Optional[int] = None
    payment_id: Optional[int] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    redirect_url: Optional[str] = Field(default=None, alias="redirectUrl")
    enrollments: list[EnrollmentDTO] = Field(default_factory=list)
    invoice_id: Optional[int] = None

    @classmethod
    def from_handle(cls, handle: PaymentHandle) -> "CheckoutResult":
        return cls(
            kind="hosted" if handle.session_id else "direct",
            order_id=handle.order_id,
            payment_id=handle.payment_id,
            session_id=handle.session_id,
            redirect_url=handle.redirect_url,
            enrollments=handle.enrollments,
            invoice_id=handle.invoice_id,
        )


class WebhookOutcome(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    UNKNOWN_REFERENCE = "unknown_reference"
    IGNORED = "ignored"


class WebhookResult(BaseModel):
    outcome: WebhookOutcome
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    reference: Optional[str] = None
    order_id: Optional[int] = None


class RedirectResult(BaseModel):
    """Success/cancel redirect landing payload."""

    session_id: str
    order_id: Optional[int] = None
    order_status: Optional[str] = None
    payment_status: Optional[str] = None
    outcome: WebhookOutcome


# --- transactions listing ---

class TransactionItemDTO(BaseModel):
    course_id: int
    title: Optional[str] = None
    price: Decimal
    discount: Decimal


class TransactionPaymentDTO(BaseModel):
    id: int
    status: str
    method: str
    amount: Decimal
    currency: str
    transaction_ref: Optional[str] = None
    paid_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, payment: Payment) -> "TransactionPaymentDTO":
        return cls(
            id=payment.id,
            status=payment.status.value,
            method=payment.method.value,
            amount=payment.amount,
            currency=payment.currency,
            transaction_ref=payment.transaction_ref,
            paid_at=payment.paid_at,
        )


class TransactionInvoiceDTO(BaseModel):
    id: int
    status: str
    final_amount: Decimal
    issue_date: datetime
    due_date: datetime

    @classmethod
    def from_entity(cls, invoice: Invoice) -> "TransactionInvoiceDTO":
        return cls(
            id=invoice.id,
            status=invoice.status.value,
            final_amount=invoice.final_amount,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
        )


class TransactionDTO(BaseModel):
    order_id: int
    buyer_id: int
    status: str
    total_amount: Decimal
    discount: Decimal
    tax: Decimal
    final_amount: Decimal
    currency: str
    created_at: Optional[datetime] = None
    items: list[TransactionItemDTO] = Field(default_factory=list)
    payment: Optional[TransactionPaymentDTO] = None
    invoice: Optional[TransactionInvoiceDTO] = None

    @classmethod
    def build(
        cls,
        order: Order,
        payment: Optional[Payment],
        invoice: Optional[Invoice],
    ) -> "TransactionDTO":
        return cls(
            order_id=order.id,
            buyer_id=order.buyer_id,
            status=order.status.value,
            total_amount=order.total_amount,
            discount=order.discount,
            tax=order.tax,
            final_amount=order.final_amount,
            currency=order.currency,
            created_at=order.created_at,
            items=[
                TransactionItemDTO(course_id=i.course_id, title=i.title, price=i.price, discount=i.discount)
                for i in order.items
            ],
            payment=TransactionPaymentDTO.from_entity(payment) if payment else None,
            invoice=TransactionInvoiceDTO.from_entity(invoice) if invoice else None,
        )
