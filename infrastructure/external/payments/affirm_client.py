"""
Affirm charges API adapter (REST v2, httpx).

Endpoints, relative to ``https://{sandbox|api}.affirm.{com|ca}/api/v2/``:

- ``POST charges``                      exchange a checkout token for a charge
- ``POST charges/{id}/capture``         capture (optionally partial) amount
- ``POST charges/{id}/void``            void an uncaptured authorization
- ``POST charges/{id}/refund``          refund a captured amount

Requests authenticate with HTTP Basic ``public_key:private_key`` of the
country's key pair. Amounts on the wire are integer cents.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from application.dtos.charges import CaptureResult, RefundResult, TokenExchangeResult
from core.settings import PaymentSettings, payment_settings
from domain.charge.money import within_tolerance
from infrastructure.external.payments.base import RETRYABLE_ERRORS, BaseChargeClient
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentRecoverableError,
)


def _is_transient(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class AffirmClient(BaseChargeClient):
    provider = "affirm"

    def __init__(
        self,
        config: PaymentSettings = payment_settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            timeouts=config.timeouts,
            retry=config.retry,
            transport=transport,
        )
        self._config = config

    # ------------------------------------------------------------------ http

    def _auth(self, country: str) -> httpx.BasicAuth:
        public, private = self._config.affirm.key_pair(country)
        if not public or not private:
            raise PaymentProviderError(
                f"Affirm API keys are not configured for {country}",
                provider=self.provider,
                provider_code="missing_keys",
            )
        return httpx.BasicAuth(public, private)

    async def _post(
        self,
        country: str,
        path: str,
        payload: Optional[dict[str, Any]] = None,
        *,
        idempotency_key: Optional[str] = None,
    ) -> httpx.Response:
        url = self._config.affirm.api_base_url(country) + path
        auth = self._auth(country)
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        self._debug("affirm_request", path=path, payload=payload, country=country)
        try:
            response = await self._retry(
                lambda: self.http.post(url, json=payload or {}, auth=auth, headers=headers)
            )
        except RETRYABLE_ERRORS as exc:
            self._log("affirm_transport_error", path=path, error=str(exc) or type(exc).__name__)
            raise PaymentRecoverableError(
                str(exc) or type(exc).__name__, provider=self.provider, provider_code="transport"
            ) from exc
        self._debug("affirm_response", path=path, status=response.status_code, body=response.text[:2000])
        return response

    def _raise_for_status(self, response: httpx.Response, path: str) -> None:
        if response.is_success:
            return
        body = self._json(response)
        code = body.get("code") if isinstance(body, dict) else None
        message = (body.get("message") if isinstance(body, dict) else None) or f"HTTP {response.status_code}"
        self._log("affirm_error_response", path=path, status=response.status_code, provider_code=code)
        if _is_transient(response.status_code):
            raise PaymentRecoverableError(
                message, provider=self.provider, provider_code=code, status_code=response.status_code
            )
        raise PaymentProviderError(
            message, provider=self.provider, provider_code=code, status_code=response.status_code
        )

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------- operations

    async def exchange_token(
        self,
        token: str,
        country: str,
        *,
        order_id: Optional[str] = None,
        expected_amount: Optional[int] = None,
    ) -> TokenExchangeResult:
        payload: dict[str, Any] = {"checkout_token": token}
        if order_id:
            payload["order_id"] = order_id
        response = await self._post(country, "charges", payload)
        self._raise_for_status(response, "charges")
        data = self._json(response)

        charge_id = data.get("id")
        if not charge_id:
            raise PaymentProviderError(
                "Affirm charge response missing id", provider=self.provider, provider_code="malformed"
            )
        amount = int(data.get("amount") or 0)
        details = data.get("details") or {}
        remote_order_id = data.get("order_id") or details.get("order_id")

        validates = True
        if order_id and remote_order_id is not None:
            validates = str(remote_order_id) == str(order_id)
        amount_validation = True
        if expected_amount is not None:
            amount_validation = within_tolerance(amount, expected_amount)

        self._log(
            "affirm_charge_created",
            charge_id=charge_id,
            order_id=order_id,
            amount=amount,
            validates=validates,
            amount_validation=amount_validation,
        )
        return TokenExchangeResult(
            charge_id=str(charge_id),
            validates=validates,
            amount_validation=amount_validation,
            authorized_amount=amount,
            raw=data,
        )

    async def capture(
        self,
        charge_id: str,
        amount: int,
        country: str,
        *,
        order_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Optional[CaptureResult]:
        path = f"charges/{charge_id}/capture"
        payload: dict[str, Any] = {"amount": amount}
        if order_id:
            payload["order_id"] = order_id
        response = await self._post(country, path, payload, idempotency_key=idempotency_key)
        if not response.is_success and not _is_transient(response.status_code):
            self._log("affirm_capture_declined", charge_id=charge_id, status=response.status_code)
            return None
        self._raise_for_status(response, path)
        data = self._json(response)
        return CaptureResult(
            captured_amount=int(data.get("amount") or amount),
            fee=int(data.get("fee") or data.get("fee_amount") or 0),
            event_id=data.get("id") or data.get("transaction_id"),
        )

    async def void(self, charge_id: str, country: str) -> bool:
        path = f"charges/{charge_id}/void"
        response = await self._post(country, path)
        if not response.is_success and not _is_transient(response.status_code):
            self._log("affirm_void_declined", charge_id=charge_id, status=response.status_code)
            return False
        self._raise_for_status(response, path)
        self._log("affirm_charge_voided", charge_id=charge_id)
        return True

    async def refund(
        self,
        charge_id: str,
        amount: int,
        country: str,
        *,
        idempotency_key: Optional[str] = None,
    ) -> Optional[RefundResult]:
        path = f"charges/{charge_id}/refund"
        response = await self._post(country, path, {"amount": amount}, idempotency_key=idempotency_key)
        if not response.is_success and not _is_transient(response.status_code):
            self._log("affirm_refund_declined", charge_id=charge_id, status=response.status_code)
            return None
        self._raise_for_status(response, path)
        data = self._json(response)
        refund_id = data.get("id")
        if not refund_id:
            return None
        return RefundResult(
            refund_id=str(refund_id),
            amount=int(data.get("amount") or amount),
            fee_refunded=int(data.get("fee_refunded") or 0),
        )
