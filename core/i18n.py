from __future__ import annotations

import gettext
from contextvars import ContextVar
from pathlib import Path

import structlog

_current_locale: ContextVar[str] = ContextVar("current_locale", default="en")
_translators: dict[str, gettext.NullTranslations] = {}
_logger = structlog.get_logger(__name__)


# English source strings keyed by message id. Catalogs under locales/ translate
# the English text, so a missing catalog degrades to these.
MESSAGES: dict[str, str] = {
    "health.ok": "OK",
    "error.internal": "Internal server error",
    "validation.failed": "Validation failed: {reason}",
    "validation.domain": "Invalid value",
    "auth.unauthorized": "Unauthorized",
    "order.not_found": "Order not found",
    "order.already_exists": "Order already exists",
    "checkout.begin.ok": "Checkout started",
    "checkout.bootstrap.not_found": "Checkout session not found",
    "checkout.unsupported_endpoint": "Checkout failed. Unsupported endpoint.",
    "checkout.token_missing": "Checkout failed. Missing checkout token.",
    "checkout.order_not_available": "Checkout failed. Unable to find the order. Please try again.",
    "checkout.token_exchange_failed": (
        "Checkout failed. Unable to exchange token with Affirm. "
        "Please try checking out again later, or try a different payment source."
    ),
    "checkout.order_mismatch": (
        "Checkout failed. Order mismatch for Affirm token. "
        "Please try checking out again later, or try a different payment source."
    ),
    "checkout.amount_mismatch": (
        "Checkout failed. Your cart amount has changed since starting your "
        "Affirm application. Please try again."
    ),
    "checkout.already_paid": "Checkout failed. This order has already been paid.",
    "checkout.capture_failed": (
        "Checkout failed. Unable to capture charge with Affirm. "
        "Please try checking out again later, or try a different payment source."
    ),
    "checkout.unsupported_currency": "Affirm is not available for currency {currency}.",
    "charge.capture.declined": "Unable to capture charge {charge_id}.",
    "charge.capture.invalid_amount": "Capture amount {amount} is not valid for this charge.",
    "charge.transition.invalid": "Charge cannot {action} in state {state}.",
    "charge.concurrent_update": "The order's charge was updated concurrently. Please retry.",
    "charge.captured": "Charge captured",
    "charge.voided": "Charge voided",
    "charge.void.rejected": "Charge was not voided",
    "charge.refunded": "Charge refunded",
    "refund.not_refundable": (
        "Refund failed: The order is not refundable. It was neither authorized "
        "nor captured. The customer may have abandoned the order."
    ),
    "refund.partial_uncaptured": (
        "Refund failed: You cannot partially refund an order until it has been captured."
    ),
    "refund.void_failed": (
        "Refund failed: The order had been authorized, and not captured, but "
        "voiding the order unexpectedly failed."
    ),
    "refund.failed": (
        "Refund failed: The order had been authorized and captured, but "
        "refunding the order unexpectedly failed."
    ),
    "refund.exceeds_captured": "Refund failed: {amount} exceeds the refundable balance of {available}.",
    "availability.ok": "Availability evaluated",
    "payment.provider_error": "The payment provider rejected the request.",
    "payment.provider_unavailable": "The payment provider is temporarily unavailable. Please try again later.",
}


def set_locale(locale: str) -> None:
    """Set current request locale (fallback to 'en')."""
    _current_locale.set(locale or "en")


def get_locale() -> str:
    """Get current request locale (default 'en')."""
    return _current_locale.get()


def _get_translator(locale: str) -> gettext.NullTranslations:
    tr = _translators.get(locale)
    if tr is not None:
        return tr
    localedir = Path(__file__).resolve().parent.parent / "locales"
    tr = gettext.translation(
        domain="messages",
        localedir=str(localedir),
        languages=[locale],
        fallback=True,
    )
    _translators[locale] = tr
    return tr


def t(msgid: str, **params) -> str:
    """Translate a message id (or raw English text) for the current locale.

    Unknown ids are treated as source text, so ``t("Some text")`` works too.
    """
    source = MESSAGES.get(msgid, msgid)
    text = _get_translator(get_locale()).gettext(source)
    if not params:
        return text
    try:
        return text.format(**params)
    except (KeyError, IndexError, ValueError) as exc:
        _logger.warning("i18n_format_failed", msgid=msgid, params=list(params.keys()), error=str(exc))
        return text
