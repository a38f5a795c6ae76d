"""Decides whether the installment payment method is offered for a cart."""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from application.dtos.charges import Availability
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from domain.charge.eligibility import is_available


logger = get_logger(__name__)


class AvailabilityService:
    def __init__(self, config: PaymentSettings = payment_settings) -> None:
        self._config = config

    def evaluate(self, total: Decimal, country: Optional[str] = None, currency: Optional[str] = None) -> Availability:
        cfg = self._config.affirm
        if not cfg.enabled:
            return self._declined("disabled", total, country)
        if not self._config.is_valid_for_use(currency):
            return self._declined("not_valid_for_use", total, country)
        if not is_available(total, country, cfg.min_total, cfg.max_total, cfg.enabled):
            return self._declined("ineligible", total, country)
        return Availability(available=True)

    @staticmethod
    def _declined(reason: str, total: Decimal, country: Optional[str]) -> Availability:
        logger.debug("payment_method_unavailable", reason=reason, total=str(total), country=country)
        return Availability(available=False, reason=reason)
