"""
Shared plumbing for charge gateway clients: one pooled httpx client,
tenacity retries on transport failures and gateway-scoped logging.
"""
from __future__ import annotations

from typing import Awaitable, Callable, Optional, TypeVar

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.logging_config import get_logger
from core.settings import PaymentRetry, PaymentTimeouts


logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (httpx.TimeoutException, httpx.TransportError)


class BaseChargeClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        timeouts: Optional[PaymentTimeouts] = None,
        retry: Optional[PaymentRetry] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeouts = timeouts or PaymentTimeouts()
        self._retry_policy = retry or PaymentRetry()
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        t = self._timeouts
        return httpx.Timeout(t.total, connect=t.connect, read=t.read, write=t.write)

    @property
    def http(self) -> httpx.AsyncClient:
        """Lazily created pooled client; closed by aclose() on shutdown."""
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeouts, transport=self._transport)
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            try:
                await self._http.aclose()
            finally:
                self._http = None

    async def _retry(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run fn, retrying transport failures only. HTTP error statuses are returned as-is."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_policy.max + 1),
            wait=wait_exponential(multiplier=self._retry_policy.base_backoff, min=0.1, max=2.0),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        ):
            with attempt:
                return await fn()
        raise AssertionError("unreachable")

    def _log(self, event: str, **kwargs) -> None:
        logger.info(event, provider=self.provider, **kwargs)

    def _debug(self, event: str, **kwargs) -> None:
        logger.debug(event, provider=self.provider, **kwargs)
