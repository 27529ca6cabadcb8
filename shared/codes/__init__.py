"""
Business codes returned in the `code` field of every response envelope.

General codes live here; provider and fulfillment failures are in
`shared.codes.payment_codes`. The two ranges never overlap.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    SUCCESS = 0

    # Request validation (1xxxx)
    PARAM_VALIDATION_ERROR = 10003

    # Orders and enrollment (2xxxx)
    NOT_FOUND = 20006
    CONFLICT = 20007
    ALREADY_ENROLLED = 20008
    ORDER_NOT_CANCELLABLE = 20009

    # Buyer identity (3xxxx)
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002
    TOKEN_EXPIRED = 30004

    # System (4xxxx)
    SYSTEM_ERROR = 40000
    SERVICE_UNAVAILABLE = 40003


__all__ = ["BusinessCode"]
