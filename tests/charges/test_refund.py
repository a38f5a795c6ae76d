from decimal import Decimal

import pytest

from application.dtos.charges import CaptureResult, RefundResult
from domain.charge.exceptions import (
    NotRefundableError,
    PartialRefundOnUncapturedOrderError,
    RefundExceedsCapturedError,
    RefundFailedError,
)
from domain.common.exceptions import DomainValidationException
from domain.order.entity import OrderStatus


@pytest.fixture
def captured_order(charges, gateway, add_order):
    async def setup():
        add_order(total="100.00")
        gateway.capture_result = CaptureResult(captured_amount=10000, fee=300, event_id="EVT-1")
        await charges.authorize("1001", "tok")
    return setup


@pytest.mark.asyncio
async def test_partial_refund_adjusts_fee(charges, gateway, store, captured_order):
    await captured_order()
    gateway.refund_result = RefundResult(refund_id="RF-1", amount=5000, fee_refunded=90)

    outcome = await charges.refund("1001", Decimal("50.00"), "damaged")

    assert outcome.action == "refund"
    assert outcome.amount == 5000
    record = store.charges["1001"]
    assert record.refunded_total == 5000
    assert record.fee_amount == 210
    order = store.orders["1001"]
    assert order.status is OrderStatus.PROCESSING
    assert "Refunded $50.00 - Refund ID: RF-1 - Reason: damaged" in [n.content for n in order.notes]


@pytest.mark.asyncio
async def test_full_refund_marks_order_refunded(charges, store, captured_order):
    await captured_order()

    outcome = await charges.refund("1001", None, "")

    assert outcome.amount == 10000
    assert store.orders["1001"].status is OrderStatus.REFUNDED
    assert store.charges["1001"].refundable_balance == 0


@pytest.mark.asyncio
async def test_refund_over_balance(charges, gateway, captured_order):
    await captured_order()
    await charges.refund("1001", Decimal("60.00"))

    with pytest.raises(RefundExceedsCapturedError):
        await charges.refund("1001", Decimal("50.00"))
    assert len(gateway.called("refund")) == 1


@pytest.mark.asyncio
async def test_non_positive_refund_is_rejected(charges, gateway, store, captured_order):
    await captured_order()

    for amount in (Decimal("0"), Decimal("-5.00"), Decimal("0.001")):
        with pytest.raises(DomainValidationException) as excinfo:
            await charges.refund("1001", amount)
        assert excinfo.value.field == "amount"

    assert not gateway.called("refund")
    assert store.charges["1001"].refunded_total == 0


@pytest.mark.asyncio
async def test_refund_declined(charges, gateway, sink, store, captured_order):
    await captured_order()
    gateway.refund_declines = True

    with pytest.raises(RefundFailedError):
        await charges.refund("1001", Decimal("10.00"))
    assert sink.error_types() == ["TRANSACTION_DECLINED"]
    assert store.charges["1001"].refunded_total == 0


@pytest.mark.asyncio
async def test_unauthorized_order_is_not_refundable(charges, add_order):
    add_order()
    with pytest.raises(NotRefundableError):
        await charges.refund("1001")


@pytest.mark.asyncio
async def test_refund_of_uncaptured_auth_voids(build_charges, gateway, store, add_order):
    charges = build_charges(transaction_mode="auth_only")
    add_order(total="100.00")
    await charges.authorize("1001", "tok")

    with pytest.raises(PartialRefundOnUncapturedOrderError):
        await charges.refund("1001", Decimal("40.00"))

    outcome = await charges.refund("1001", Decimal("99.99"), "cancelled by customer")

    assert outcome.action == "void"
    assert gateway.called("void") == [("void", "CHG-1", "USA")]
    assert store.charges["1001"].voided is True
    order = store.orders["1001"]
    assert order.status is OrderStatus.REFUNDED
    assert "Voided - Reason: cancelled by customer" in [n.content for n in order.notes]


@pytest.mark.asyncio
async def test_refund_void_failure(build_charges, gateway, add_order):
    charges = build_charges(transaction_mode="auth_only")
    add_order()
    await charges.authorize("1001", "tok")
    gateway.void_result = False

    with pytest.raises(RefundFailedError) as excinfo:
        await charges.refund("1001")
    assert excinfo.value.message_key == "refund.void_failed"
