"""Per-order mutation lock port."""
from __future__ import annotations

from typing import AsyncContextManager, Protocol, runtime_checkable


@runtime_checkable
class OrderLock(Protocol):
    """Serializes charge mutations for one order.

    ``hold`` raises OrderLockTimeoutError when the lock cannot be acquired.
    """

    def hold(self, order_id: str) -> AsyncContextManager[None]: ...
