import base64
import json

import httpx
import pytest

from core.settings import PaymentRetry
from infrastructure.external.payments.affirm_client import AffirmClient
from infrastructure.external.payments.exceptions import PaymentProviderError, PaymentRecoverableError


def _client(settings_factory, handler, **affirm) -> AffirmClient:
    config = settings_factory(**affirm)
    config.retry = PaymentRetry(max=0, base_backoff=0.0)
    return AffirmClient(config, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_exchange_token_validates_order_and_amount(settings_factory):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "CHG-1", "amount": 10001, "details": {"order_id": "1001"}})

    client = _client(settings_factory, handler)
    result = await client.exchange_token("tok_1", "USA", order_id="1001", expected_amount=10000)
    await client.aclose()

    assert seen["url"] == "https://api.affirm.com/api/v2/charges"
    assert seen["auth"].startswith("Basic ")
    assert seen["body"] == {"checkout_token": "tok_1", "order_id": "1001"}
    assert result.charge_id == "CHG-1"
    assert result.validates is True
    assert result.amount_validation is True
    assert result.authorized_amount == 10001


@pytest.mark.asyncio
async def test_exchange_token_detects_mismatches(settings_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "CHG-1", "amount": 5000, "order_id": "other"})

    client = _client(settings_factory, handler)
    result = await client.exchange_token("tok_1", "USA", order_id="1001", expected_amount=10000)
    assert result.validates is False
    assert result.amount_validation is False


@pytest.mark.asyncio
async def test_canadian_sandbox_host_and_keys(settings_factory):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"id": "CHG-1", "amount": 100})

    client = _client(settings_factory, handler, sandbox=True, public_key_ca="pk_ca", private_key_ca="sk_ca")
    await client.exchange_token("tok", "CAN")

    assert seen["url"] == "https://sandbox.affirm.ca/api/v2/charges"
    assert seen["auth"] == "Basic " + base64.b64encode(b"pk_ca:sk_ca").decode()


@pytest.mark.asyncio
async def test_missing_keys_raise_provider_error(settings_factory):
    client = _client(settings_factory, lambda request: httpx.Response(200, json={}))
    with pytest.raises(PaymentProviderError):
        await client.exchange_token("tok", "CAN")


@pytest.mark.asyncio
async def test_capture_sends_idempotency_key(settings_factory):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["key"] = request.headers.get("idempotency-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "EVT-1", "amount": 4000, "fee": 120})

    client = _client(settings_factory, handler)
    result = await client.capture("CHG-1", 4000, "USA", order_id="1001", idempotency_key="abc")

    assert seen["path"] == "/api/v2/charges/CHG-1/capture"
    assert seen["key"] == "abc"
    assert seen["body"] == {"amount": 4000, "order_id": "1001"}
    assert (result.captured_amount, result.fee, result.event_id) == (4000, 120, "EVT-1")


@pytest.mark.asyncio
async def test_declines_are_not_exceptions(settings_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": "capture-declined", "message": "declined"})

    client = _client(settings_factory, handler)
    assert await client.capture("CHG-1", 100, "USA") is None
    assert await client.void("CHG-1", "USA") is False
    assert await client.refund("CHG-1", 100, "USA") is None


@pytest.mark.asyncio
async def test_server_errors_are_recoverable(settings_factory):
    client = _client(settings_factory, lambda request: httpx.Response(503, json={"message": "unavailable"}))
    with pytest.raises(PaymentRecoverableError):
        await client.void("CHG-1", "USA")


@pytest.mark.asyncio
async def test_transport_errors_are_recoverable(settings_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(settings_factory, handler)
    with pytest.raises(PaymentRecoverableError):
        await client.refund("CHG-1", 100, "USA")


@pytest.mark.asyncio
async def test_refund_result(settings_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "RF-1", "amount": 5000, "fee_refunded": 90})

    client = _client(settings_factory, handler)
    result = await client.refund("CHG-1", 5000, "USA", idempotency_key="k")
    assert (result.refund_id, result.amount, result.fee_refunded) == ("RF-1", 5000, 90)
