"""Delivery port for error-tracker payloads."""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class ErrorSink(Protocol):
    """Hands a built payload to something that delivers it out of band.

    Implementations must return quickly; delivery happens elsewhere.
    """

    def submit(self, payload: dict[str, Any], *, country: Optional[str]) -> None: ...
