"""
Exceptions for payment providers mapped to unified BusinessException variants.

The provider's own message is kept for logs and in ``details``; API responses
show a generic translated message instead.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class _ProviderFailure(BusinessException):
    code: int = PaymentCode.PROVIDER_ERROR
    message_key: str = "payment.provider_error"

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: str | None = None,
        status_code: int | None = None,
        details: Optional[dict] = None,
    ):
        self.provider = provider
        self.provider_code = provider_code
        self.status_code = status_code
        full_details = {
            "provider": provider,
            "provider_code": provider_code,
            "status_code": status_code,
            "provider_message": message,
        }
        if details:
            full_details.update(details)
        super().__init__(
            code=type(self).code,
            message=message,
            error_type=type(self).__name__,
            details=full_details,
            message_key=type(self).message_key,
        )


class PaymentProviderError(_ProviderFailure):
    """Provider rejected the request (4xx, malformed response, missing keys)."""


class PaymentRecoverableError(_ProviderFailure):
    """Transient failure (timeout, transport error, 5xx, rate limit); safe to retry later."""

    code = PaymentCode.PROVIDER_RECOVERABLE
    message_key = "payment.provider_unavailable"
