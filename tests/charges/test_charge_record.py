import pytest

from domain.charge.entity import ChargeState, OrderChargeRecord
from domain.charge.exceptions import InvalidCaptureAmountError, InvalidChargeTransitionError
from domain.common.exceptions import DomainValidationException


def _authorized(amount: int = 10000, *, partial: bool = False, auth_only: bool = True) -> OrderChargeRecord:
    record = OrderChargeRecord(order_id="1001")
    record.record_authorization("CHG-1", amount, partial_capture_enabled=partial)
    if auth_only:
        record.mark_auth_only()
    return record


def test_new_record_is_unauthorized():
    record = OrderChargeRecord(order_id="1001")
    assert record.state is ChargeState.UNAUTHORIZED
    assert not record.can_void()


def test_ledger_invariants_are_validated():
    with pytest.raises(DomainValidationException):
        OrderChargeRecord(order_id="1", authorized_amount=100, captured_total=200)
    with pytest.raises(DomainValidationException):
        OrderChargeRecord(order_id="1", authorized_amount=100, captured_total=50, refunded_total=60)


def test_charge_id_is_immutable_once_recorded():
    record = _authorized()
    record.record_authorization("CHG-1", 10000)
    assert record.charge_id == "CHG-1"
    with pytest.raises(InvalidChargeTransitionError):
        record.record_authorization("CHG-2", 10000)


def test_full_capture_clears_auth_only():
    record = _authorized()
    assert record.resolve_capture_amount() == 10000
    assert record.apply_capture(10000, fee=300) is True
    assert record.state is ChargeState.CAPTURED
    assert record.auth_only is False
    assert record.partially_captured is False
    assert record.fee_amount == 300


def test_partial_capture_requires_setting():
    record = _authorized(partial=False)
    with pytest.raises(InvalidCaptureAmountError):
        record.resolve_capture_amount(4000)


def test_partial_captures_accumulate():
    record = _authorized(partial=True)
    assert record.apply_capture(record.resolve_capture_amount(4000)) is False
    assert record.state is ChargeState.PARTIALLY_CAPTURED
    assert record.partially_captured is True
    assert record.auth_only is True
    assert record.remaining_authorization == 6000

    assert record.apply_capture(record.resolve_capture_amount()) is True
    assert record.captured_total == 10000
    assert record.partially_captured is False


def test_capture_above_remaining_is_rejected():
    record = _authorized(partial=True)
    with pytest.raises(InvalidCaptureAmountError):
        record.resolve_capture_amount(10001)


def test_void_only_before_capture():
    record = _authorized()
    assert record.can_void()
    record.mark_voided()
    assert record.state is ChargeState.VOIDED
    with pytest.raises(InvalidChargeTransitionError):
        record.resolve_capture_amount()

    captured = _authorized(partial=True)
    captured.apply_capture(1000)
    assert not captured.can_void()


def test_refund_reduces_fee_but_not_below_zero():
    record = _authorized(auth_only=False)
    record.apply_capture(10000, fee=300)
    record.apply_refund(5000, fee_refunded=90)
    assert record.fee_amount == 210
    assert record.state is ChargeState.PARTIALLY_REFUNDED

    record.apply_refund(5000, fee_refunded=500)
    assert record.fee_amount == 0
    assert record.state is ChargeState.REFUNDED


def test_refund_cannot_exceed_captured():
    record = _authorized(auth_only=False)
    record.apply_capture(10000)
    with pytest.raises(DomainValidationException):
        record.apply_refund(10001)


def test_nonce_is_single_use():
    record = OrderChargeRecord(order_id="1001")
    nonce = record.issue_nonce()
    assert not record.consume_nonce("wrong")
    assert record.consume_nonce(nonce)
    assert not record.consume_nonce(nonce)


def test_meta_keys_are_prefixed():
    record = _authorized()
    meta = record.to_meta("affirm")
    assert meta["_affirm_charge_id"] == "CHG-1"
    assert meta["_affirm_authorized_only"] is True
    assert meta["_affirm_authorized_amount"] == 10000
