"""
Checkout flow around the provider's hosted checkout.

``begin_checkout`` binds a single-use nonce to the order, ``bootstrap``
builds the checkout object for the hosted page, and ``complete_checkout``
handles the provider's return leg. The return leg never raises: every
failure becomes a shopper notice and a redirect.
"""
from __future__ import annotations

from typing import Callable, Optional
from urllib.parse import urlencode

from application.dtos.charges import CheckoutBootstrap, CheckoutResult, CheckoutStart
from application.ports.order_lock import OrderLock
from application.services.charge_service import ChargeLifecycleService
from application.services.error_tracker import ErrorTracker
from core.config import Settings, settings
from core.i18n import t
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from domain.charge.exceptions import (
    AlreadyPaidError,
    CaptureDeclinedError,
    ChargeError,
    CheckoutEndpointNotSupportedError,
    MissingCheckoutTokenError,
    OrderNotAvailableError,
)
from domain.charge.money import country_for_currency
from domain.common.exceptions import BusinessException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order
from shared.codes.payment_codes import ErrorKind


logger = get_logger(__name__)

COMPLETE_CHECKOUT_ACTION = "complete_checkout"


class CheckoutService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        charges: ChargeLifecycleService,
        tracker: ErrorTracker,
        lock: OrderLock,
        config: PaymentSettings = payment_settings,
        app_settings: Settings = settings,
    ) -> None:
        self._uow_factory = uow_factory
        self._charges = charges
        self._tracker = tracker
        self._lock = lock
        self._config = config
        self._app = app_settings

    # ---------------------------------------------------------------- URLs

    def _site_url(self, path: str, **query) -> str:
        url = f"{self._app.SITE_URL}{path}"
        if query:
            url = f"{url}?{urlencode(query)}"
        return url

    def checkout_url(self) -> str:
        return self._site_url("/checkout")

    def cart_url(self) -> str:
        return self._site_url("/cart")

    def order_received_url(self, order: Order) -> str:
        return self._site_url(f"/checkout/order-received/{order.id}", key=order.order_key)

    def confirmation_url(self, order: Order, nonce: str) -> str:
        return self._site_url(
            f"{self._app.API_PREFIX}/checkout/complete",
            action=COMPLETE_CHECKOUT_ACTION,
            order_id=order.id,
            order_key=order.order_key,
            nonce=nonce,
        )

    def cancel_url(self, order: Order) -> str:
        mode = self._config.affirm.cancel_url
        if mode == "cart":
            return self.cart_url()
        if mode == "payment":
            return self._site_url(f"/checkout/order-pay/{order.id}", pay_for_order="true", key=order.order_key)
        if mode == "custom" and self._config.affirm.custom_cancel_url:
            return self._config.affirm.custom_cancel_url
        return self.checkout_url()

    # ------------------------------------------------------------ begin / bootstrap

    async def begin_checkout(self, order_id: str) -> CheckoutStart:
        """Issue a fresh nonce for the order and return the redirect to the checkout page."""
        async with self._lock.hold(order_id):
            async with self._uow_factory() as uow:
                order = await uow.order_repository.get(order_id)
                if order is None:
                    raise OrderNotAvailableError(order_id)
                country_for_currency(order.currency)
                if not order.needs_payment():
                    raise AlreadyPaidError(order.id)
                record = await uow.charge_repository.get_or_create(order_id)
                nonce = record.issue_nonce()
                await uow.charge_repository.save(record)

        logger.info("checkout_begin", order_id=order_id)
        redirect = self._site_url(
            "/checkout", affirm=1, order_id=order.id, nonce=nonce, key=order.order_key
        )
        return CheckoutStart(order_id=order.id, redirect_url=redirect, nonce=nonce)

    async def bootstrap(self, order_id: str, nonce: Optional[str]) -> Optional[CheckoutBootstrap]:
        """Checkout object for the hosted flow, or None when the nonce does not match."""
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get(order_id)
            record = await uow.charge_repository.get(order_id) if order else None
        if order is None or record is None or not record.nonce_matches(nonce):
            logger.info("checkout_bootstrap_nonce_mismatch", order_id=order_id)
            return None

        _, alpha3 = country_for_currency(order.currency)
        public_key, _ = self._config.affirm.key_pair(alpha3)
        return CheckoutBootstrap(
            checkout_mode=self._config.affirm.checkout_mode,
            public_api_key=public_key,
            merchant={
                "user_confirmation_url": self.confirmation_url(order, nonce),
                "user_cancel_url": self.cancel_url(order),
                "user_confirmation_url_action": "POST",
                "name": self._app.PROJECT_NAME,
            },
            order_id=order.id,
            currency=order.currency,
            total=order.total_cents,
            metadata={
                "order_key": order.order_key,
                "platform_type": self._app.PLATFORM_NAME,
                "platform_version": self._app.PLATFORM_VERSION,
                "platform_affirm": self._config.extension_version,
                "mode": self._config.affirm.checkout_mode,
            },
        )

    # ----------------------------------------------------------------- return leg

    async def complete_checkout(
        self,
        *,
        action: Optional[str],
        checkout_token: Optional[str],
        order_id: Optional[str],
        order_key: Optional[str] = None,
        nonce: Optional[str] = None,
    ) -> CheckoutResult:
        step = "validate"
        order: Optional[Order] = None
        try:
            if action != COMPLETE_CHECKOUT_ACTION:
                raise CheckoutEndpointNotSupportedError(action)
            if not checkout_token:
                raise MissingCheckoutTokenError()
            if not order_id:
                raise OrderNotAvailableError(None, reason="missing_order_id")

            order, consumed = await self._consume_nonce(order_id, order_key, nonce)
            if not consumed:
                logger.info("checkout_return_ignored", order_id=order_id)
                target = self.checkout_url() if order.needs_payment() else self.order_received_url(order)
                return CheckoutResult(redirect_url=target, ignored=True)

            step = "auth"
            await self._charges.authorize(order.id, checkout_token)
            logger.info("checkout_completed", order_id=order.id)
            return CheckoutResult(redirect_url=self.order_received_url(order), success=True)

        except AlreadyPaidError:
            logger.info("checkout_return_already_paid", order_id=order_id)
            return CheckoutResult(redirect_url=self.order_received_url(order), success=True)
        except BusinessException as exc:
            logger.warning(
                "checkout_return_failed",
                order_id=order_id,
                step=step,
                error_type=exc.error_type,
                error=exc.message,
            )
            known = isinstance(exc, ChargeError)
            if step == "auth" and not self._already_reported(exc):
                kind = ErrorKind.TRANSACTION_DECLINED if known else ErrorKind.INTERNAL_SERVER_ERROR
                self._tracker.report("auth", order, kind, exc=exc, message=exc.message)
            if step == "auth" and not known:
                notice = t("checkout.token_exchange_failed")
            elif exc.message_key:
                notice = t(exc.message_key, **(exc.format_params or {}))
            else:
                notice = exc.message
            return CheckoutResult(redirect_url=self.checkout_url(), notice=notice)
        except Exception as exc:
            logger.error("checkout_return_error", order_id=order_id, step=step, exc_info=True)
            if step == "auth" and not self._already_reported(exc):
                self._tracker.report("auth", order, ErrorKind.INTERNAL_SERVER_ERROR, exc=exc)
            return CheckoutResult(redirect_url=self.checkout_url(), notice=t("checkout.token_exchange_failed"))

    def _already_reported(self, exc: BaseException) -> bool:
        # declines and failures after authorization are reported by the charge service
        return isinstance(exc, CaptureDeclinedError) or self._tracker.already_reported(exc)

    async def _consume_nonce(
        self, order_id: str, order_key: Optional[str], nonce: Optional[str]
    ) -> tuple[Order, bool]:
        """Load the order and burn the nonce. Returns (order, consumed)."""
        async with self._lock.hold(order_id):
            async with self._uow_factory() as uow:
                order = await uow.order_repository.get(order_id)
                if order is None:
                    raise OrderNotAvailableError(order_id)
                if order_key is not None and not order.key_is_valid(order_key):
                    raise OrderNotAvailableError(order_id, reason="invalid_order_key")
                record = await uow.charge_repository.get(order_id)
                if record is None or not record.consume_nonce(nonce):
                    return order, False
                await uow.charge_repository.save(record)
                return order, True
