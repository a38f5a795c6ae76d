"""
Charge gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from application.dtos.charges import CaptureResult, RefundResult, TokenExchangeResult


@runtime_checkable
class ChargeGateway(Protocol):
    """Installment provider charge API.

    ``exchange_token`` raises on provider/network failure. ``capture`` and
    ``refund`` return ``None`` when the provider declines; ``void`` returns
    ``False``. Amounts are integer cents; ``country`` selects the key pair.
    """

    provider: str

    async def exchange_token(
        self,
        token: str,
        country: str,
        *,
        order_id: Optional[str] = None,
        expected_amount: Optional[int] = None,
    ) -> TokenExchangeResult: ...

    async def capture(
        self,
        charge_id: str,
        amount: int,
        country: str,
        *,
        order_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Optional[CaptureResult]: ...

    async def void(self, charge_id: str, country: str) -> bool: ...

    async def refund(
        self,
        charge_id: str,
        amount: int,
        country: str,
        *,
        idempotency_key: Optional[str] = None,
    ) -> Optional[RefundResult]: ...
