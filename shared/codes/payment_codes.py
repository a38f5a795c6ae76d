"""
Payment specific codes and provider error kinds.
"""
from __future__ import annotations

from enum import Enum, IntEnum


class PaymentCode(IntEnum):
    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001

    # Checkout return (61xxx)
    TOKEN_EXCHANGE_FAILED = 61000
    ORDER_MISMATCH = 61001
    AMOUNT_MISMATCH = 61002
    ALREADY_PAID = 61003
    CHECKOUT_ENDPOINT_UNSUPPORTED = 61004
    CHECKOUT_TOKEN_MISSING = 61005
    ORDER_NOT_AVAILABLE = 61006
    UNSUPPORTED_CURRENCY = 61007

    # Charge lifecycle (62xxx)
    CAPTURE_DECLINED = 62000
    INVALID_CAPTURE_AMOUNT = 62001
    INVALID_TRANSITION = 62002
    NOT_REFUNDABLE = 62100
    PARTIAL_REFUND_UNCAPTURED = 62101
    REFUND_FAILED = 62102
    REFUND_EXCEEDS_CAPTURED = 62103
    CONCURRENT_UPDATE = 62200


class ErrorKind(str, Enum):
    """Error categories understood by the provider's error tracker."""

    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    TRANSACTION_DECLINED = "TRANSACTION_DECLINED"
    INVALID_AMOUNT = "INVALID AMOUNT"
