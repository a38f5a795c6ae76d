"""Charge lifecycle errors.

Every error carries an English message used for logs and order notes plus a
``message_key`` the API layer translates for shoppers and admins.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class ChargeError(BusinessException):
    """Base class for checkout and charge lifecycle failures."""


class CheckoutEndpointNotSupportedError(ChargeError):
    def __init__(self, action: Optional[str] = None):
        super().__init__(
            code=PaymentCode.CHECKOUT_ENDPOINT_UNSUPPORTED,
            message="Checkout failed. Unsupported endpoint.",
            error_type="CheckoutEndpointNotSupported",
            details={"action": action},
            message_key="checkout.unsupported_endpoint",
        )


class MissingCheckoutTokenError(ChargeError):
    def __init__(self):
        super().__init__(
            code=PaymentCode.CHECKOUT_TOKEN_MISSING,
            message="Checkout failed. Missing checkout token.",
            error_type="MissingCheckoutToken",
            field="checkout_token",
            message_key="checkout.token_missing",
        )


class OrderNotAvailableError(ChargeError):
    def __init__(self, order_id: Optional[str] = None, reason: str = "not_found"):
        super().__init__(
            code=PaymentCode.ORDER_NOT_AVAILABLE,
            message="Checkout failed. Unable to find the order.",
            error_type="OrderNotAvailable",
            details={"order_id": order_id, "reason": reason},
            message_key="checkout.order_not_available",
        )


class UnsupportedCurrencyError(ChargeError):
    def __init__(self, currency: str):
        super().__init__(
            code=PaymentCode.UNSUPPORTED_CURRENCY,
            message=f"Affirm is not available for currency {currency}.",
            error_type="UnsupportedCurrency",
            details={"currency": currency},
            field="currency",
            message_key="checkout.unsupported_currency",
            format_params={"currency": currency},
        )


class TokenExchangeError(ChargeError):
    def __init__(self, reason: Optional[str] = None):
        super().__init__(
            code=PaymentCode.TOKEN_EXCHANGE_FAILED,
            message=(
                "Checkout failed. Unable to exchange token with Affirm. Please try "
                "checking out again later, or try a different payment source."
            ),
            error_type="TokenExchangeError",
            details={"reason": reason} if reason else None,
            message_key="checkout.token_exchange_failed",
        )


class OrderMismatchError(ChargeError):
    def __init__(self, charge_id: Optional[str] = None):
        super().__init__(
            code=PaymentCode.ORDER_MISMATCH,
            message=(
                "Checkout failed. Order mismatch for Affirm token. Please try "
                "checking out again later, or try a different payment source."
            ),
            error_type="OrderMismatchError",
            details={"charge_id": charge_id},
            message_key="checkout.order_mismatch",
        )


class AmountMismatchError(ChargeError):
    def __init__(self, charge_id: Optional[str] = None):
        super().__init__(
            code=PaymentCode.AMOUNT_MISMATCH,
            message=(
                "Checkout failed. Your cart amount has changed since starting your "
                "Affirm application. Please try again."
            ),
            error_type="AmountMismatchError",
            details={"charge_id": charge_id},
            message_key="checkout.amount_mismatch",
        )


class AlreadyPaidError(ChargeError):
    def __init__(self, order_id: Optional[str] = None):
        super().__init__(
            code=PaymentCode.ALREADY_PAID,
            message="Checkout failed. This order has already been paid.",
            error_type="AlreadyPaidError",
            details={"order_id": order_id},
            message_key="checkout.already_paid",
        )


class CaptureDeclinedError(ChargeError):
    def __init__(self, charge_id: Optional[str] = None):
        super().__init__(
            code=PaymentCode.CAPTURE_DECLINED,
            message=(
                "Checkout failed. Unable to capture charge with Affirm. Please try "
                "checking out again later, or try a different payment source."
            ),
            error_type="CaptureDeclinedError",
            details={"charge_id": charge_id},
            message_key="checkout.capture_failed",
        )


class InvalidCaptureAmountError(ChargeError):
    def __init__(self, amount: int, remaining: int, *, reason: str):
        super().__init__(
            code=PaymentCode.INVALID_CAPTURE_AMOUNT,
            message=f"Capture amount {amount} is not valid for this charge ({reason}).",
            error_type="InvalidCaptureAmount",
            details={"amount": amount, "remaining": remaining, "reason": reason},
            field="amount",
            message_key="charge.capture.invalid_amount",
            format_params={"amount": amount},
        )


class InvalidChargeTransitionError(ChargeError):
    def __init__(self, action: str, state: str):
        super().__init__(
            code=PaymentCode.INVALID_TRANSITION,
            message=f"Charge cannot {action} in state {state}.",
            error_type="InvalidChargeTransition",
            details={"action": action, "state": state},
            message_key="charge.transition.invalid",
            format_params={"action": action, "state": state},
        )


class NotRefundableError(ChargeError):
    def __init__(self, order_id: Optional[str] = None):
        super().__init__(
            code=PaymentCode.NOT_REFUNDABLE,
            message=(
                "Refund failed: The order is not refundable. It was neither authorized "
                "nor captured. The customer may have abandoned the order."
            ),
            error_type="NotRefundableError",
            details={"order_id": order_id},
            message_key="refund.not_refundable",
        )


class PartialRefundOnUncapturedOrderError(ChargeError):
    def __init__(self, amount: int, total: int):
        super().__init__(
            code=PaymentCode.PARTIAL_REFUND_UNCAPTURED,
            message="Refund failed: You cannot partially refund an order until it has been captured.",
            error_type="PartialRefundOnUncapturedOrderError",
            details={"amount": amount, "order_total": total},
            field="amount",
            message_key="refund.partial_uncaptured",
        )


class RefundFailedError(ChargeError):
    def __init__(self, *, voiding: bool = False, charge_id: Optional[str] = None):
        if voiding:
            message = (
                "Refund failed: The order had been authorized, and not captured, "
                "but voiding the order unexpectedly failed."
            )
            key = "refund.void_failed"
        else:
            message = (
                "Refund failed: The order had been authorized and captured, but "
                "refunding the order unexpectedly failed."
            )
            key = "refund.failed"
        super().__init__(
            code=PaymentCode.REFUND_FAILED,
            message=message,
            error_type="RefundFailedError",
            details={"charge_id": charge_id, "voiding": voiding},
            message_key=key,
        )


class RefundExceedsCapturedError(ChargeError):
    def __init__(self, amount: int, available: int):
        super().__init__(
            code=PaymentCode.REFUND_EXCEEDS_CAPTURED,
            message=f"Refund failed: {amount} exceeds the refundable balance of {available}.",
            error_type="RefundExceedsCaptured",
            details={"amount": amount, "available": available},
            field="amount",
            message_key="refund.exceeds_captured",
            format_params={"amount": amount, "available": available},
        )


class ConcurrentChargeUpdateError(ChargeError):
    def __init__(self, order_id: Optional[str] = None):
        super().__init__(
            code=PaymentCode.CONCURRENT_UPDATE,
            message="The order's charge was updated concurrently. Please retry.",
            error_type="ConcurrentChargeUpdate",
            details={"order_id": order_id} if order_id else None,
            message_key="charge.concurrent_update",
        )


class OrderLockTimeoutError(ChargeError):
    def __init__(self, order_id: str):
        super().__init__(
            code=BusinessCode.CONFLICT,
            message="Another operation on this order is in progress. Please retry.",
            error_type="OrderLockTimeout",
            details={"order_id": order_id},
            message_key="charge.concurrent_update",
        )
