import asyncio

import pytest

from application.services.charge_service import ChargeLifecycleService
from domain.charge.exceptions import ConcurrentChargeUpdateError, InvalidCaptureAmountError, OrderLockTimeoutError
from infrastructure.cache.order_lock import LocalOrderLock


class CaptureOverlap:
    """Wraps a gateway's capture so it yields to the loop and counts overlapping calls."""

    def __init__(self, gateway, on_capture=None) -> None:
        self.in_flight = 0
        self.max_in_flight = 0
        self._capture = gateway.capture
        self._on_capture = on_capture
        gateway.capture = self.capture

    async def capture(self, *args, **kwargs):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            if self._on_capture is not None:
                self._on_capture()
            return await self._capture(*args, **kwargs)
        finally:
            self.in_flight -= 1


@pytest.fixture
def build(uow_factory, gateway, tracker, settings_factory):
    def make(lock) -> ChargeLifecycleService:
        config = settings_factory(transaction_mode="auth_only", partial_capture=True)
        return ChargeLifecycleService(uow_factory, gateway, tracker, lock, config)
    return make


@pytest.mark.asyncio
async def test_lock_entries_are_dropped_after_release():
    lock = LocalOrderLock(blocking_timeout=1)

    async with lock.hold("1001"):
        assert "1001" in lock._locks
    assert lock._locks == {}

    for i in range(50):
        async with lock.hold(f"order-{i}"):
            pass
    assert lock._locks == {}


@pytest.mark.asyncio
async def test_waiters_keep_the_entry_until_last_release():
    lock = LocalOrderLock(blocking_timeout=1)
    order = []

    async def worker(name):
        async with lock.hold("1001"):
            order.append(name)
            await asyncio.sleep(0.01)

    await asyncio.gather(worker("a"), worker("b"), worker("c"))

    assert order == ["a", "b", "c"]
    assert lock._locks == {}


@pytest.mark.asyncio
async def test_lock_timeout_drops_waiter_entry():
    lock = LocalOrderLock(blocking_timeout=0.05)

    async with lock.hold("1001"):
        with pytest.raises(OrderLockTimeoutError):
            async with lock.hold("1001"):
                pass
        assert lock._locks["1001"].users == 1
    assert lock._locks == {}


@pytest.mark.asyncio
async def test_concurrent_captures_are_serialized(build, gateway, store, add_order):
    charges = build(LocalOrderLock(blocking_timeout=5))
    overlap = CaptureOverlap(gateway)
    add_order(total="100.00")
    await charges.authorize("1001", "tok")

    results = await asyncio.gather(
        charges.capture("1001", 6000),
        charges.capture("1001", 6000),
        return_exceptions=True,
    )

    assert overlap.max_in_flight == 1
    assert len(gateway.called("capture")) == 1
    assert True in results
    assert any(isinstance(r, InvalidCaptureAmountError) for r in results)
    record = store.charges["1001"]
    assert record.captured_total == 6000
    assert record.captured_total <= record.authorized_amount


@pytest.mark.asyncio
async def test_unlocked_concurrent_captures_hit_version_check(build, gateway, lock, store, add_order):
    charges = build(lock)
    overlap = CaptureOverlap(gateway)
    add_order(total="100.00")
    await charges.authorize("1001", "tok")

    results = await asyncio.gather(
        charges.capture("1001", 6000),
        charges.capture("1001", 6000),
        return_exceptions=True,
    )

    assert overlap.max_in_flight == 2
    assert results[0] is True
    assert isinstance(results[1], ConcurrentChargeUpdateError)
    assert store.charges["1001"].captured_total == 6000


@pytest.mark.asyncio
async def test_stale_record_is_not_saved(build, gateway, lock, store, add_order):
    def concurrent_writer():
        store.charges["1001"].version += 1

    charges = build(lock)
    CaptureOverlap(gateway, on_capture=concurrent_writer)
    add_order(total="100.00")
    await charges.authorize("1001", "tok")
    notes_before = len(store.orders["1001"].notes)

    with pytest.raises(ConcurrentChargeUpdateError):
        await charges.capture("1001", 4000)

    record = store.charges["1001"]
    assert record.version == 2
    assert record.captured_total == 0
    assert len(store.orders["1001"].notes) == notes_before
