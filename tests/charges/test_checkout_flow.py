import pytest

from application.dtos.charges import TokenExchangeResult
from core.i18n import t
from domain.charge.exceptions import AlreadyPaidError, OrderNotAvailableError, UnsupportedCurrencyError
from domain.order.entity import OrderStatus
from infrastructure.external.payments.exceptions import PaymentProviderError


async def _begin(checkout, add_order, **kwargs):
    add_order(**kwargs)
    return await checkout.begin_checkout("1001")


async def _complete(checkout, nonce, **overrides):
    params = dict(
        action="complete_checkout",
        checkout_token="tok_1",
        order_id="1001",
        order_key="key_1001",
        nonce=nonce,
    )
    params.update(overrides)
    return await checkout.complete_checkout(**params)


@pytest.mark.asyncio
async def test_begin_checkout_issues_nonce(checkout, store, add_order):
    start = await _begin(checkout, add_order)

    assert start.redirect_url.startswith("https://shop.example/checkout?affirm=1&order_id=1001&nonce=")
    assert store.charges["1001"].checkout_nonce == start.nonce


@pytest.mark.asyncio
async def test_begin_checkout_rejections(checkout, add_order):
    with pytest.raises(OrderNotAvailableError):
        await checkout.begin_checkout("missing")

    add_order("2001", currency="EUR")
    with pytest.raises(UnsupportedCurrencyError):
        await checkout.begin_checkout("2001")

    add_order("2002", status=OrderStatus.PROCESSING)
    with pytest.raises(AlreadyPaidError):
        await checkout.begin_checkout("2002")


@pytest.mark.asyncio
async def test_bootstrap_requires_matching_nonce(checkout, add_order):
    start = await _begin(checkout, add_order)

    boot = await checkout.bootstrap("1001", start.nonce)
    assert boot is not None
    assert boot.total == 10000
    assert boot.currency == "USD"
    assert boot.public_api_key == "pk_test"
    confirmation = boot.merchant["user_confirmation_url"]
    assert confirmation.startswith("https://shop.example/api/v1/checkout/complete?action=complete_checkout")
    assert f"nonce={start.nonce}" in confirmation
    assert boot.merchant["user_cancel_url"] == "https://shop.example/cart"

    assert await checkout.bootstrap("1001", "not-the-nonce") is None
    assert await checkout.bootstrap("1001", None) is None


@pytest.mark.asyncio
async def test_complete_checkout_success(checkout, store, add_order):
    start = await _begin(checkout, add_order)

    result = await _complete(checkout, start.nonce)

    assert result.success is True
    assert result.notice is None
    assert result.redirect_url == "https://shop.example/checkout/order-received/1001?key=key_1001"
    assert store.orders["1001"].status is OrderStatus.PROCESSING
    assert store.charges["1001"].checkout_nonce is None


@pytest.mark.asyncio
async def test_replayed_return_is_ignored(checkout, gateway, add_order):
    start = await _begin(checkout, add_order)
    await _complete(checkout, start.nonce)

    replay = await _complete(checkout, start.nonce)

    assert replay.ignored is True
    assert replay.redirect_url == "https://shop.example/checkout/order-received/1001?key=key_1001"
    assert len(gateway.called("exchange_token")) == 1


@pytest.mark.asyncio
async def test_unsupported_action(checkout, sink, add_order):
    start = await _begin(checkout, add_order)

    result = await _complete(checkout, start.nonce, action="something_else")

    assert result.success is False
    assert result.notice == t("checkout.unsupported_endpoint")
    assert result.redirect_url == "https://shop.example/checkout"
    assert sink.reports == []


@pytest.mark.asyncio
async def test_missing_token(checkout, add_order):
    start = await _begin(checkout, add_order)
    result = await _complete(checkout, start.nonce, checkout_token="")
    assert result.notice == "Checkout failed. Missing checkout token."


@pytest.mark.asyncio
async def test_wrong_order_key(checkout, gateway, add_order):
    start = await _begin(checkout, add_order)
    result = await _complete(checkout, start.nonce, order_key="key_other")
    assert result.notice == t("checkout.order_not_available")
    assert not gateway.calls


@pytest.mark.asyncio
async def test_token_exchange_failure_is_reported(checkout, gateway, sink, add_order):
    start = await _begin(checkout, add_order)
    gateway.exchange_error = PaymentProviderError("invalid checkout token", provider="affirm", status_code=400)

    result = await _complete(checkout, start.nonce)

    assert result.notice == t("checkout.token_exchange_failed")
    assert len(sink.reports) == 1
    payload, country = sink.reports[0]
    assert payload["transaction_step"] == "auth"
    assert payload["error_data"]["error_type"] == "TRANSACTION_DECLINED"
    assert country == "USA"


@pytest.mark.asyncio
async def test_capture_decline_reported_once(checkout, gateway, sink, store, add_order):
    start = await _begin(checkout, add_order)
    gateway.capture_declines = True

    result = await _complete(checkout, start.nonce)

    assert result.notice == t("checkout.capture_failed")
    assert sink.error_types() == ["TRANSACTION_DECLINED"]
    assert sink.reports[0][0]["transaction_step"] == "capture"
    assert store.orders["1001"].status is OrderStatus.PENDING


@pytest.mark.asyncio
async def test_unexpected_error_shows_generic_notice(checkout, gateway, sink, add_order):
    start = await _begin(checkout, add_order)
    gateway.exchange_error = RuntimeError("boom")

    result = await _complete(checkout, start.nonce)

    assert result.notice == t("checkout.token_exchange_failed")
    assert sink.error_types() == ["INTERNAL_SERVER_ERROR"]


@pytest.mark.asyncio
async def test_failure_after_authorization_is_reported(checkout, gateway, sink, store, add_order):
    start = await _begin(checkout, add_order, total="0.01")
    gateway.exchange_result = TokenExchangeResult(
        charge_id="CHG-1", validates=True, amount_validation=True, authorized_amount=0
    )

    result = await _complete(checkout, start.nonce)

    assert result.notice == t("checkout.token_exchange_failed")
    assert sink.error_types() == ["INTERNAL_SERVER_ERROR"]
    assert sink.reports[0][0]["transaction_step"] == "auth"
    assert gateway.called("void") == [("void", "CHG-1", "USA")]
    assert store.charges["1001"].charge_id is None
    assert store.orders["1001"].status is OrderStatus.PENDING
