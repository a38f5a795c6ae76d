"""
Error tracker reporter.

Builds the provider's platform-tracker payload and hands it to an
:class:`~application.ports.error_sink.ErrorSink`. Reporting is best effort:
``report`` never raises and never waits on the network.
"""
from __future__ import annotations

import platform
import traceback
from typing import Any, Optional

from application.ports.error_sink import ErrorSink
from core.config import settings
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from domain.charge.exceptions import UnsupportedCurrencyError
from domain.charge.money import country_for_currency
from domain.order.entity import Order
from shared.codes.payment_codes import ErrorKind


logger = get_logger(__name__)

MAX_STACK_FRAMES = 10

# set on exception instances already sent, so outer layers do not report them twice
REPORTED_ATTR = "_error_tracker_reported"


def stack_frames(exc: BaseException, limit: int = MAX_STACK_FRAMES) -> list[dict[str, Any]]:
    """Innermost-first frames of ``exc``'s traceback, at most ``limit``."""
    frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    return [
        {"filename": frame.filename, "lineno": frame.lineno, "method": frame.name}
        for frame in reversed(frames[-limit:])
    ]


class ErrorTracker:
    def __init__(self, sink: ErrorSink, config: PaymentSettings = payment_settings) -> None:
        self._sink = sink
        self._config = config

    def country_code(self, order: Optional[Order]) -> str:
        """Alpha-3 country whose key pair authenticates the report."""
        if order is not None:
            try:
                return country_for_currency(order.currency)[1]
            except UnsupportedCurrencyError:
                pass
        return "CAN" if not self._config.affirm.public_key else "USA"

    def build_payload(
        self,
        step: str,
        error_kind: ErrorKind | str,
        exc: Optional[BaseException] = None,
        message: str = "",
    ) -> dict[str, Any]:
        kind = error_kind.value if isinstance(error_kind, ErrorKind) else str(error_kind)
        error_data: dict[str, Any] = {
            "error_type": kind,
            "error_message": message or (str(exc) if exc is not None else "") or kind,
        }
        if exc is not None:
            error_data["error_class"] = type(exc).__name__
            error_data["trace"] = stack_frames(exc)
        return {
            "extension_data": {
                "platform": settings.PLATFORM_NAME,
                "environment": "sandbox" if self._config.affirm.sandbox else "live",
                "language": "python",
                "code_version": platform.python_version(),
                "extension_version": self._config.extension_version,
                "platform_version": settings.PLATFORM_VERSION,
            },
            "transaction_step": step,
            "error_data": error_data,
        }

    @staticmethod
    def mark_reported(exc: BaseException) -> None:
        setattr(exc, REPORTED_ATTR, True)

    @staticmethod
    def already_reported(exc: BaseException) -> bool:
        """True when this exception instance was already handed to the tracker."""
        return bool(getattr(exc, REPORTED_ATTR, False))

    def report(
        self,
        step: str,
        order: Optional[Order],
        error_kind: ErrorKind | str,
        exc: Optional[BaseException] = None,
        message: str = "",
    ) -> None:
        if exc is not None:
            self.mark_reported(exc)
        if not self._config.tracker.enabled:
            return
        try:
            payload = self.build_payload(step, error_kind, exc, message)
            country = self.country_code(order)
            self._sink.submit(payload, country=country)
            logger.debug(
                "error_tracker_submitted",
                step=step,
                error_type=payload["error_data"]["error_type"],
                order_id=getattr(order, "id", None),
            )
        except Exception as err:  # reporting must not affect the caller
            logger.warning("error_tracker_dropped", step=step, error=str(err))
