"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Gateway options live under ``AFFIRM__*`` (e.g. ``AFFIRM__PUBLIC_KEY``),
HTTP tuning under ``TIMEOUTS__*`` / ``RETRY__*``.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_CURRENCIES = ("USD", "CAD")

_API_HOSTS = {
    # (sandbox, canada) -> api base
    (True, False): "https://sandbox.affirm.com/api/v2/",
    (False, False): "https://api.affirm.com/api/v2/",
    (True, True): "https://sandbox.affirm.ca/api/v2/",
    (False, True): "https://api.affirm.ca/api/v2/",
}

TRACKER_PATH = "api/v1/partnersolutions/platform/tracker"


def _is_canada(country: Optional[str]) -> bool:
    return (country or "").upper() in {"CA", "CAN"}


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class TrackerSettings(BaseModel):
    enabled: bool = True
    # Reporting must never hold up a request; the worker uses this as its whole budget.
    timeout: float = 2.0
    sandbox_host: str = "https://api.global-sandbox.affirm.com/"
    live_host: str = "https://api.global.affirm.com/"


class AffirmSettings(BaseModel):
    enabled: bool = True
    title: str = "Monthly Payments"
    description: str = "Pay over time with Affirm."
    region: Literal["USA", "CAN"] = "USA"
    sandbox: bool = False

    public_key: Optional[str] = None
    private_key: Optional[str] = None
    public_key_ca: Optional[str] = None
    private_key_ca: Optional[str] = None

    transaction_mode: Literal["auth_and_capture", "auth_only"] = "auth_and_capture"
    partial_capture: bool = False
    checkout_mode: Literal["modal", "redirect"] = "modal"
    cancel_url: Literal["cart", "payment", "checkout", "custom"] = "cart"
    custom_cancel_url: Optional[str] = None

    # Major currency units; ``None`` falls back to the evaluator defaults.
    min_total: Optional[Decimal] = Decimal("50")
    max_total: Optional[Decimal] = Decimal("30000")

    debug: bool = True

    @property
    def auth_only(self) -> bool:
        return self.transaction_mode == "auth_only"

    def key_pair(self, country: Optional[str]) -> tuple[Optional[str], Optional[str]]:
        """Return (public, private) keys for the given alpha-2/alpha-3 country."""
        if _is_canada(country):
            return self.public_key_ca, self.private_key_ca
        return self.public_key, self.private_key

    def api_base_url(self, country: Optional[str]) -> str:
        return _API_HOSTS[(self.sandbox, _is_canada(country))]

    def dashboard_url(self, transaction_id: str) -> str:
        host = "https://sandbox.affirm.com" if self.sandbox else "https://affirm.com"
        return f"{host}/dashboard/#/details/{transaction_id}"

    def keys_configured(self) -> bool:
        us = bool(self.public_key and self.private_key)
        ca = bool(self.public_key_ca and self.private_key_ca)
        return us or ca


class PaymentSettings(BaseSettings):
    gateway_id: str = "affirm"
    store_currency: str = "USD"
    extension_version: str = "1.0.0"

    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    tracker: TrackerSettings = Field(default_factory=TrackerSettings)
    affirm: AffirmSettings = Field(default_factory=AffirmSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    def tracker_url(self) -> str:
        host = self.tracker.sandbox_host if self.affirm.sandbox else self.tracker.live_host
        return host + TRACKER_PATH

    def is_valid_for_use(self, currency: Optional[str] = None) -> bool:
        """Gateway can be offered: supported currency and at least one key pair."""
        cur = (currency or self.store_currency).upper()
        return cur in SUPPORTED_CURRENCIES and self.affirm.keys_configured()

    def configuration_warnings(self) -> list[str]:
        """Human-readable problems an operator should fix, empty when healthy."""
        warnings: list[str] = []
        cfg = self.affirm
        if not cfg.enabled:
            return warnings
        if self.store_currency.upper() not in SUPPORTED_CURRENCIES:
            warnings.append(
                f"Affirm does not support the store currency {self.store_currency}."
            )
        if cfg.region == "CAN":
            pub, priv = cfg.public_key_ca, cfg.private_key_ca
        else:
            pub, priv = cfg.public_key, cfg.private_key
        if not pub or not priv:
            warnings.append(
                f"Affirm API keys for region {cfg.region} are missing; the gateway is disabled."
            )
        if cfg.public_key and cfg.public_key == cfg.private_key:
            warnings.append("Affirm public and private keys are identical.")
        if cfg.public_key_ca and cfg.public_key_ca == cfg.private_key_ca:
            warnings.append("Affirm Canada public and private keys are identical.")
        if cfg.cancel_url == "custom" and not cfg.custom_cancel_url:
            warnings.append("Custom cancel URL is selected but empty; checkout page is used instead.")
        return warnings


payment_settings = PaymentSettings()
