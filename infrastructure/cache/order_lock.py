"""单订单变更锁实现：配置 Redis 时使用分布式锁，否则退化为进程内 asyncio.Lock"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis import asyncio as aioredis
from redis.exceptions import LockError

from core.config import settings
from core.logging_config import get_logger
from domain.charge.exceptions import OrderLockTimeoutError


logger = get_logger(__name__)


class _LocalEntry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class LocalOrderLock:
    """进程内锁（单实例部署/测试）

    每个订单一个 asyncio.Lock，按持有与等待者计数；计数归零即移除，字典大小只取决于当前并发订单数。
    """

    def __init__(self, blocking_timeout: float = settings.order_lock.blocking_timeout) -> None:
        self._locks: dict[str, _LocalEntry] = {}
        self._blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(self, order_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(order_id)
        if entry is None:
            entry = self._locks[order_id] = _LocalEntry()
        entry.users += 1
        try:
            try:
                await asyncio.wait_for(entry.lock.acquire(), timeout=self._blocking_timeout)
            except asyncio.TimeoutError:
                logger.warning("order_lock_timeout", order_id=order_id, backend="local")
                raise OrderLockTimeoutError(order_id) from None
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(order_id) is entry:
                del self._locks[order_id]


class RedisOrderLock:
    """基于 Redis 的分布式锁"""

    def __init__(
        self,
        client: aioredis.Redis,
        namespace: str = settings.redis.namespace,
        timeout: int = settings.order_lock.timeout,
        blocking_timeout: int = settings.order_lock.blocking_timeout,
    ) -> None:
        self._client = client
        self._namespace = namespace.strip(":")
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    def _lock_key(self, order_id: str) -> str:
        return f"lock:{self._namespace}:order:{order_id}"

    @asynccontextmanager
    async def hold(self, order_id: str) -> AsyncIterator[None]:
        lock_key = self._lock_key(order_id)
        lock = self._client.lock(lock_key, timeout=self._timeout, blocking_timeout=self._blocking_timeout)
        acquired = await lock.acquire()
        if not acquired:
            logger.warning("order_lock_timeout", order_id=order_id, backend="redis")
            raise OrderLockTimeoutError(order_id)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as exc:
                # 锁已过期被他人持有：记录即可，版本校验兜底
                logger.error("order_lock_release_failed", lock_key=lock_key, error=str(exc))


_redis_client: Optional[aioredis.Redis] = None
_order_lock: Optional[LocalOrderLock | RedisOrderLock] = None


def get_order_lock() -> LocalOrderLock | RedisOrderLock:
    """全局订单锁：配置 REDIS__URL 时使用 Redis，否则使用进程内锁"""
    global _redis_client, _order_lock
    if _order_lock is not None:
        return _order_lock
    if settings.redis.url:
        _redis_client = aioredis.from_url(
            settings.redis.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis.max_connections,
        )
        _order_lock = RedisOrderLock(_redis_client)
        logger.info("order_lock_initialized", backend="redis")
    else:
        _order_lock = LocalOrderLock()
        logger.info("order_lock_initialized", backend="local")
    return _order_lock


async def shutdown_order_lock() -> None:
    """关闭Redis连接"""
    global _redis_client, _order_lock
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
    _order_lock = None
