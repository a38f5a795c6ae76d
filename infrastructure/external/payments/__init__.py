"""
Factory for charge gateway clients.
"""
from __future__ import annotations

from typing import Optional

from core.settings import payment_settings
from application.ports.charge_gateway import ChargeGateway


_gateway: Optional[ChargeGateway] = None


def get_charge_gateway(provider: Optional[str] = None) -> ChargeGateway:
    """Shared gateway instance (keeps the HTTP connection pool alive)."""
    global _gateway
    name = (provider or payment_settings.gateway_id).lower()
    if name != "affirm":
        raise ValueError(f"Unsupported payment provider: {name}")
    if _gateway is None:
        from .affirm_client import AffirmClient
        _gateway = AffirmClient()
    return _gateway


async def shutdown_charge_gateway() -> None:
    global _gateway
    if _gateway is not None:
        close = getattr(_gateway, "aclose", None)
        if callable(close):
            await close()
        _gateway = None
