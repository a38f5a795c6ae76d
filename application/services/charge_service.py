"""
Charge lifecycle application service.

Drives an order's charge through authorize -> capture -> refund, and
authorize -> void. Every mutation runs under the per-order lock and inside
one unit of work; the charge record's version guards against lost updates.

Provider declines on capture/void/refund are reported to the error tracker as
declined transactions. Anything unexpected is reported as an internal error
and re-raised.
"""
from __future__ import annotations

import hashlib
from decimal import Decimal
from typing import Callable, Optional

from application.dtos.charges import ChargeView, RefundOutcome
from application.ports.charge_gateway import ChargeGateway
from application.ports.order_lock import OrderLock
from application.services.error_tracker import ErrorTracker
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from domain.charge.entity import OrderChargeRecord
from domain.charge.exceptions import (
    AlreadyPaidError,
    AmountMismatchError,
    CaptureDeclinedError,
    InvalidCaptureAmountError,
    NotRefundableError,
    OrderMismatchError,
    PartialRefundOnUncapturedOrderError,
    RefundExceedsCapturedError,
    RefundFailedError,
    TokenExchangeError,
)
from domain.charge.money import country_for_currency, format_money, to_cents, within_tolerance
from domain.common.exceptions import BusinessException, DomainValidationException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderStatus
from shared.codes.payment_codes import ErrorKind


logger = get_logger(__name__)


def _idempotency_key(op: str, charge_id: str, ledger_position: int, amount: int) -> str:
    # Same ledger position + amount means a retry of the same request.
    base = f"{op}|{charge_id}|{ledger_position}|{amount}"
    return hashlib.sha256(base.encode("utf-8")).hexdigest()


class ChargeLifecycleService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: ChargeGateway,
        tracker: ErrorTracker,
        lock: OrderLock,
        config: PaymentSettings = payment_settings,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._tracker = tracker
        self._lock = lock
        self._config = config

    # ------------------------------------------------------------------ queries

    async def get_charge(self, order_id: str) -> ChargeView:
        async with self._uow_factory(readonly=True) as uow:
            _, record = await uow.load_order_charge(order_id)
        return self.view(record)

    def view(self, record: OrderChargeRecord) -> ChargeView:
        return ChargeView(
            order_id=record.order_id,
            state=record.state.value,
            charge_id=record.charge_id,
            authorized_amount=record.authorized_amount,
            captured_total=record.captured_total,
            refunded_total=record.refunded_total,
            fee_amount=record.fee_amount,
            remaining_authorization=record.remaining_authorization,
            auth_only=record.auth_only,
            partial_capture_enabled=record.partial_capture_enabled,
            partially_captured=record.partially_captured,
            voided=record.voided,
            transaction_url=self.transaction_url(record.charge_id),
            meta=record.to_meta(self._config.gateway_id),
        )

    def transaction_url(self, transaction_id: Optional[str]) -> Optional[str]:
        if not transaction_id:
            return None
        return self._config.affirm.dashboard_url(transaction_id)

    # ---------------------------------------------------------------- authorize

    async def authorize(self, order_id: str, checkout_token: str) -> OrderChargeRecord:
        """Exchange a checkout token for a charge and authorize (and capture) the order.

        Raises TokenExchangeError, OrderMismatchError, AmountMismatchError,
        AlreadyPaidError or CaptureDeclinedError. Once the provider has issued a
        charge, every failure voids it before the error surfaces.
        """
        async with self._lock.hold(order_id):
            async with self._uow_factory() as uow:
                order, record = await uow.load_order_charge(order_id)
                country = self._country(order)

                logger.info("charge_authorize_request", order_id=order.id, country=country)
                try:
                    result = await self._gateway.exchange_token(
                        checkout_token,
                        country,
                        order_id=order.id,
                        expected_amount=order.total_cents,
                    )
                except BusinessException as exc:
                    logger.warning(
                        "charge_token_exchange_failed",
                        order_id=order.id,
                        error_type=exc.error_type,
                        error=exc.message,
                    )
                    raise TokenExchangeError(reason=exc.message) from exc

                charge_id = result.charge_id
                logger.debug(
                    "charge_token_exchanged",
                    order_id=order.id,
                    charge_id=charge_id,
                    validates=result.validates,
                    amount_validation=result.amount_validation,
                    authorized_amount=result.authorized_amount,
                )

                if not result.validates:
                    await self._cleanup_void(order, charge_id, country)
                    raise OrderMismatchError(charge_id)

                if not result.amount_validation:
                    await self._cleanup_void(order, charge_id, country)
                    order.update_status(OrderStatus.CANCELLED, "Affirm total mismatch.")
                    await uow.order_repository.save(order)
                    await uow.commit()
                    raise AmountMismatchError(charge_id)

                if not order.needs_payment():
                    await self._cleanup_void(order, charge_id, country)
                    raise AlreadyPaidError(order.id)

                try:
                    record.record_authorization(
                        charge_id,
                        result.authorized_amount,
                        partial_capture_enabled=self._config.affirm.partial_capture,
                    )
                    if self._config.affirm.auth_only:
                        record.mark_auth_only()
                        order.set_transaction_id(charge_id)
                        order.update_status(
                            OrderStatus.ON_HOLD,
                            f"Authorized charge of {format_money(record.authorized_amount, order.currency)} "
                            f"(charge ID {charge_id})",
                        )
                        captured = True
                    else:
                        captured = await self._capture(order, record, 0, country)
                except Exception as exc:
                    await self._cleanup_void(order, charge_id, country)
                    # capture-step failures were already reported inside _capture
                    if not self._tracker.already_reported(exc):
                        self._tracker.report("auth", order, ErrorKind.INTERNAL_SERVER_ERROR, exc=exc)
                    raise

                if not captured:
                    # The charge is voided and not recorded; keep the order notes only.
                    await self._cleanup_void(order, charge_id, country)
                    await uow.order_repository.save(order)
                    await uow.commit()
                    raise CaptureDeclinedError(charge_id)

                await uow.save_order_charge(order, record)
                logger.info(
                    "charge_authorized",
                    order_id=order.id,
                    charge_id=charge_id,
                    state=record.state.value,
                    auth_only=record.auth_only,
                )
                return record

    # ------------------------------------------------------------------ capture

    async def capture(self, order_id: str, amount: int = 0) -> bool:
        """Capture ``amount`` cents (0 = remaining authorization). False when declined."""
        async with self._lock.hold(order_id):
            async with self._uow_factory() as uow:
                order, record = await uow.load_order_charge(order_id)
                captured = await self._capture(order, record, amount, self._country(order))
                if captured:
                    await uow.save_order_charge(order, record)
                return captured

    async def _capture(self, order: Order, record: OrderChargeRecord, amount: int, country: str) -> bool:
        try:
            amount = record.resolve_capture_amount(amount)
        except InvalidCaptureAmountError as exc:
            self._tracker.report("capture", order, ErrorKind.INVALID_AMOUNT, exc=exc, message=exc.message)
            raise

        key = _idempotency_key("capture", record.charge_id, record.captured_total, amount)
        logger.info(
            "charge_capture_request",
            order_id=order.id,
            charge_id=record.charge_id,
            amount=amount,
            idempotency_key=key,
        )
        try:
            result = await self._gateway.capture(
                record.charge_id, amount, country, order_id=order.id, idempotency_key=key
            )
        except BusinessException as exc:
            logger.warning("charge_capture_provider_error", order_id=order.id, error=exc.message)
            result = None
        except Exception as exc:
            self._tracker.report("capture", order, ErrorKind.INTERNAL_SERVER_ERROR, exc=exc)
            raise

        if result is None:
            logger.warning("charge_capture_declined", order_id=order.id, charge_id=record.charge_id)
            self._tracker.report(
                "capture", order, ErrorKind.TRANSACTION_DECLINED, message="Unable to capture charge"
            )
            return False

        try:
            fully_captured = record.apply_capture(result.captured_amount, result.fee)
        except BusinessException as exc:
            self._tracker.report("capture", order, ErrorKind.INTERNAL_SERVER_ERROR, exc=exc)
            raise

        order.add_note(
            f"Captured charge of {format_money(result.captured_amount, order.currency)} "
            f"(charge ID {record.charge_id} / event ID {result.event_id})"
        )
        if fully_captured:
            order.payment_complete(record.charge_id)
        logger.info(
            "charge_captured",
            order_id=order.id,
            charge_id=record.charge_id,
            captured_amount=result.captured_amount,
            captured_total=record.captured_total,
            fully_captured=fully_captured,
        )
        return True

    # --------------------------------------------------------------------- void

    async def void(self, order_id: str) -> bool:
        """Void an auth-only charge. False when not voidable or the provider refuses."""
        async with self._lock.hold(order_id):
            async with self._uow_factory() as uow:
                order, record = await uow.load_order_charge(order_id)
                if not record.can_void():
                    logger.info("charge_void_rejected", order_id=order.id, state=record.state.value)
                    return False
                voided = await self._void_at_provider(order, record.charge_id, self._country(order))
                if voided:
                    record.mark_voided()
                    order.add_note(f"Authorized charge {record.charge_id} has been voided")
                    await uow.save_order_charge(order, record)
                else:
                    # keep the "Unable to void" note for the merchant
                    await uow.order_repository.save(order)
                return voided

    async def _void_at_provider(self, order: Order, charge_id: str, country: str) -> bool:
        logger.info("charge_void_request", order_id=order.id, charge_id=charge_id)
        try:
            voided = await self._gateway.void(charge_id, country)
        except BusinessException as exc:
            logger.warning("charge_void_provider_error", order_id=order.id, error=exc.message)
            voided = False
        except Exception as exc:
            self._tracker.report("void", order, ErrorKind.INTERNAL_SERVER_ERROR, exc=exc)
            raise
        if not voided:
            order.add_note(f"Unable to void charge {charge_id}")
            self._tracker.report("void", order, ErrorKind.TRANSACTION_DECLINED, message="Unable to void")
        return voided

    async def _cleanup_void(self, order: Order, charge_id: str, country: str) -> None:
        try:
            await self._void_at_provider(order, charge_id, country)
        except Exception as exc:  # already reported; the original failure wins
            logger.error("charge_cleanup_void_failed", order_id=order.id, charge_id=charge_id, error=str(exc))

    # ------------------------------------------------------------------- refund

    async def refund(self, order_id: str, amount: Optional[Decimal] = None, reason: str = "") -> RefundOutcome:
        """Refund ``amount`` (major units, default: order total).

        An auth-only order that has not been captured can only be refunded in
        full, which voids the authorization instead.
        """
        async with self._lock.hold(order_id):
            async with self._uow_factory() as uow:
                order, record = await uow.load_order_charge(order_id)
                if not self._is_refundable(order, record):
                    raise NotRefundableError(order.id)

                cents = to_cents(amount) if amount is not None else order.total_cents
                if cents <= 0:
                    raise DomainValidationException("refund amount must be positive", field="amount")
                country = self._country(order)

                if record.auth_only and not record.partially_captured:
                    if not within_tolerance(cents, order.total_cents):
                        raise PartialRefundOnUncapturedOrderError(cents, order.total_cents)
                    if not await self._void_at_provider(order, record.charge_id, country):
                        raise RefundFailedError(voiding=True, charge_id=record.charge_id)
                    record.mark_voided()
                    order.update_status(OrderStatus.REFUNDED, f"Voided - Reason: {reason}")
                    await uow.save_order_charge(order, record)
                    logger.info("charge_refund_voided", order_id=order.id, charge_id=record.charge_id)
                    return RefundOutcome(action="void", amount=cents)

                available = record.refundable_balance
                if cents > available:
                    raise RefundExceedsCapturedError(cents, available)

                key = _idempotency_key("refund", record.charge_id, record.refunded_total, cents)
                logger.info(
                    "charge_refund_request",
                    order_id=order.id,
                    charge_id=record.charge_id,
                    amount=cents,
                    idempotency_key=key,
                )
                try:
                    result = await self._gateway.refund(record.charge_id, cents, country, idempotency_key=key)
                except BusinessException as exc:
                    logger.warning("charge_refund_provider_error", order_id=order.id, error=exc.message)
                    result = None
                except Exception as exc:
                    self._tracker.report("refund", order, ErrorKind.INTERNAL_SERVER_ERROR, exc=exc)
                    raise

                if result is None:
                    self._tracker.report(
                        "refund", order, ErrorKind.TRANSACTION_DECLINED, message="Unable to refund"
                    )
                    raise RefundFailedError(charge_id=record.charge_id)

                record.apply_refund(cents, result.fee_refunded)
                note = (
                    f"Refunded {format_money(cents, order.currency)} - Refund ID: {result.refund_id} "
                    f"- Reason: {reason}"
                )
                if record.refundable_balance == 0 and record.remaining_authorization == 0:
                    order.update_status(OrderStatus.REFUNDED, note)
                else:
                    order.add_note(note)
                await uow.save_order_charge(order, record)
                logger.info(
                    "charge_refunded",
                    order_id=order.id,
                    charge_id=record.charge_id,
                    amount=cents,
                    refunded_total=record.refunded_total,
                    fee_amount=record.fee_amount,
                )
                return RefundOutcome(action="refund", amount=cents, refund_id=result.refund_id)

    # ------------------------------------------------------------------ helpers

    @staticmethod
    def _is_refundable(order: Order, record: OrderChargeRecord) -> bool:
        if not record.is_authorized or record.voided:
            return False
        return record.auth_only or bool(order.transaction_id or record.charge_id)

    @staticmethod
    def _country(order: Order) -> str:
        return country_for_currency(order.currency)[1]

