"""
Payment-side failures mapped to unified BusinessException variants.

Provider adapters raise these; the application layer lets them propagate to the
global exception handlers.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class PaymentProviderError(BusinessException):
    """Network or provider-side failure while talking to the payment provider."""

    def __init__(self, message: str, *, provider: str, provider_code: str | None = None, details: Optional[dict] = None):
        full_details = {"provider": provider, "provider_code": provider_code}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="PaymentProviderError",
            details=full_details,
        )


class PaymentRecoverableError(PaymentProviderError):
    """Transient provider failure (timeouts, rate limits); safe to retry."""

    def __init__(self, message: str, *, provider: str, provider_code: str | None = None, details: Optional[dict] = None):
        super().__init__(message, provider=provider, provider_code=provider_code, details=details)
        self.code = PaymentCode.PROVIDER_RECOVERABLE
        self.error_type = "PaymentRecoverableError"


class PaymentProviderNotConfiguredError(BusinessException):
    def __init__(self, provider: str):
        super().__init__(
            code=PaymentCode.PROVIDER_NOT_CONFIGURED,
            message=f"Payment provider '{provider}' is not configured",
            error_type="PaymentProviderNotConfigured",
            details={"provider": provider},
        )


class PaymentSignatureError(BusinessException):
    """Webhook payload failed signature verification; nothing was mutated."""

    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="SignatureVerificationError",
            details=full_details,
        )


class FulfillmentError(BusinessException):
    """Unexpected failure inside the atomic fulfillment transaction.

    The transaction is rolled back, so payment and order stay at their
    pre-transition status and the provider can redeliver the event.
    """

    def __init__(self, message: str, *, order_id: Optional[int] = None, payment_id: Optional[int] = None):
        super().__init__(
            code=PaymentCode.FULFILLMENT_FAILED,
            message=message,
            error_type="FulfillmentError",
            details={"order_id": order_id, "payment_id": payment_id},
        )


class RefundOutOfOrderError(BusinessException):
    """Refund arrived before the payment completed; provider should redeliver later."""

    def __init__(self, reference: str, status: str):
        super().__init__(
            code=PaymentCode.REFUND_OUT_OF_ORDER,
            message="Payment is not completed yet; refund cannot be applied",
            error_type="ConflictError",
            details={"reference": reference, "status": status},
        )
