"""
Shared business codes used across layers (Domain/Core/API).

General codes live here; charge lifecycle and provider codes are kept in
`shared.codes.payment_codes`.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """Unified business status codes (single source of truth)."""

    SUCCESS = 0

    # Request validation (1xxxx)
    PARAM_VALIDATION_ERROR = 10003

    # Orders (2xxxx)
    ORDER_NOT_FOUND = 20001
    CONFLICT = 20002
    NOT_FOUND = 20006

    # Admin access (3xxxx)
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # System (4xxxx)
    SYSTEM_ERROR = 40000
    SERVICE_UNAVAILABLE = 40003
    TOO_MANY_REQUESTS = 50001


__all__ = ["BusinessCode"]
