"""Pytest bootstrap configuration.

Environment defaults are set before any application module is imported so
that module-level settings pick them up.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ADMIN_API_TOKEN", "admin-test-token")
os.environ.setdefault("SITE_URL", "https://shop.example")
os.environ.setdefault("AFFIRM__PUBLIC_KEY", "pk_test")
os.environ.setdefault("AFFIRM__PRIVATE_KEY", "sk_test")

import copy
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional

import pytest

from application.dtos.charges import CaptureResult, RefundResult, TokenExchangeResult
from application.services.charge_service import ChargeLifecycleService
from application.services.checkout_service import CheckoutService
from application.services.error_tracker import ErrorTracker
from core.config import Settings
from core.settings import AffirmSettings, PaymentSettings
from domain.charge.entity import OrderChargeRecord
from domain.charge.exceptions import ConcurrentChargeUpdateError
from domain.charge.repository import ChargeRecordRepository
from domain.common.exceptions import OrderAlreadyExistsException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order
from domain.order.repository import OrderRepository


class InMemoryStore:
    def __init__(self) -> None:
        self.orders: dict[str, Order] = {}
        self.charges: dict[str, OrderChargeRecord] = {}
        self.next_note_id = 1
        self.commits = 0


class InMemoryOrderRepository(OrderRepository):
    def __init__(self, store: InMemoryStore, pending: dict) -> None:
        self._store = store
        self._pending = pending

    async def get(self, order_id: str) -> Optional[Order]:
        order = self._pending.get(order_id) or self._store.orders.get(order_id)
        return copy.deepcopy(order) if order is not None else None

    async def add(self, order: Order) -> Order:
        if order.id in self._store.orders or order.id in self._pending:
            raise OrderAlreadyExistsException(order.id)
        return await self.save(order)

    async def save(self, order: Order) -> Order:
        for note in order.notes:
            if note.id is None:
                note.id = self._store.next_note_id
                self._store.next_note_id += 1
        self._pending[order.id] = copy.deepcopy(order)
        return order


class InMemoryChargeRepository(ChargeRecordRepository):
    def __init__(self, store: InMemoryStore, pending: dict) -> None:
        self._store = store
        self._pending = pending

    def _current(self, order_id: str) -> Optional[OrderChargeRecord]:
        return self._pending.get(order_id) or self._store.charges.get(order_id)

    async def get(self, order_id: str) -> Optional[OrderChargeRecord]:
        record = self._current(order_id)
        return copy.deepcopy(record) if record is not None else None

    async def save(self, record: OrderChargeRecord) -> OrderChargeRecord:
        current = self._current(record.order_id)
        stored_version = current.version if current is not None else 0
        if record.version != stored_version:
            raise ConcurrentChargeUpdateError(record.order_id)
        record.version = stored_version + 1
        self._pending[record.order_id] = copy.deepcopy(record)
        return record


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """Stages writes and applies them to the store on commit."""

    def __init__(self, store: InMemoryStore, *, readonly: bool = False) -> None:
        super().__init__(readonly=readonly)
        self._store = store
        self._orders: dict = {}
        self._charges: dict = {}
        self.order_repository = InMemoryOrderRepository(store, self._orders)
        self.charge_repository = InMemoryChargeRepository(store, self._charges)

    async def commit(self) -> None:
        self._store.orders.update(self._orders)
        self._store.charges.update(self._charges)
        self._orders.clear()
        self._charges.clear()
        self._store.commits += 1
        self._committed = True

    async def rollback(self) -> None:
        self._orders.clear()
        self._charges.clear()


class FakeGateway:
    """Scriptable charge gateway; records every call."""

    provider = "fake"

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.exchange_result: Optional[TokenExchangeResult] = None
        self.exchange_error: Optional[Exception] = None
        self.capture_result: Optional[CaptureResult] = None
        self.capture_error: Optional[Exception] = None
        self.capture_declines = False
        self.void_result = True
        self.refund_result: Optional[RefundResult] = None
        self.refund_declines = False

    async def exchange_token(self, token, country, *, order_id=None, expected_amount=None):
        self.calls.append(("exchange_token", token, country, order_id, expected_amount))
        if self.exchange_error is not None:
            raise self.exchange_error
        if self.exchange_result is not None:
            return self.exchange_result
        return TokenExchangeResult(
            charge_id="CHG-1", validates=True, amount_validation=True, authorized_amount=expected_amount or 0
        )

    async def capture(self, charge_id, amount, country, *, order_id=None, idempotency_key=None):
        self.calls.append(("capture", charge_id, amount, country, idempotency_key))
        if self.capture_error is not None:
            raise self.capture_error
        if self.capture_declines:
            return None
        if self.capture_result is not None:
            return self.capture_result
        return CaptureResult(captured_amount=amount, fee=0, event_id="EVT-1")

    async def void(self, charge_id, country):
        self.calls.append(("void", charge_id, country))
        return self.void_result

    async def refund(self, charge_id, amount, country, *, idempotency_key=None):
        self.calls.append(("refund", charge_id, amount, country, idempotency_key))
        if self.refund_declines:
            return None
        if self.refund_result is not None:
            return self.refund_result
        return RefundResult(refund_id="RF-1", amount=amount, fee_refunded=0)

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


class RecordingSink:
    def __init__(self) -> None:
        self.reports: list[tuple[dict, Optional[str]]] = []

    def submit(self, payload, *, country):
        self.reports.append((payload, country))

    def error_types(self) -> list[str]:
        return [payload["error_data"]["error_type"] for payload, _ in self.reports]


class ImmediateLock:
    def __init__(self) -> None:
        self.held: list[str] = []

    @asynccontextmanager
    async def hold(self, order_id: str):
        self.held.append(order_id)
        yield


def make_config(**affirm) -> PaymentSettings:
    params = {"public_key": "pk_test", "private_key": "sk_test"}
    params.update(affirm)
    return PaymentSettings(affirm=AffirmSettings(**params))


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def uow_factory(store):
    def factory(*, readonly: bool = False) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(store, readonly=readonly)
    return factory


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def lock() -> ImmediateLock:
    return ImmediateLock()


@pytest.fixture
def config() -> PaymentSettings:
    return make_config()


@pytest.fixture
def app_settings() -> Settings:
    return Settings(SITE_URL="https://shop.example/", API_PREFIX="/api/v1")


@pytest.fixture
def tracker(sink, config) -> ErrorTracker:
    return ErrorTracker(sink, config)


@pytest.fixture
def build_charges(uow_factory, gateway, tracker, lock):
    def build(**affirm) -> ChargeLifecycleService:
        return ChargeLifecycleService(uow_factory, gateway, tracker, lock, make_config(**affirm))
    return build


@pytest.fixture
def charges(uow_factory, gateway, tracker, lock, config) -> ChargeLifecycleService:
    return ChargeLifecycleService(uow_factory, gateway, tracker, lock, config)


@pytest.fixture
def checkout(uow_factory, charges, tracker, lock, config, app_settings) -> CheckoutService:
    return CheckoutService(uow_factory, charges, tracker, lock, config, app_settings)


@pytest.fixture
def add_order(store):
    def add(order_id: str = "1001", total: str = "100.00", currency: str = "USD", **kwargs) -> Order:
        order = Order(id=order_id, order_key=f"key_{order_id}", total=Decimal(total), currency=currency, **kwargs)
        store.orders[order.id] = copy.deepcopy(order)
        return order
    return add


@pytest.fixture
def settings_factory():
    return make_config
