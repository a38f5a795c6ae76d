"""缓存/锁层对外暴露的接口"""
from .order_lock import (
    LocalOrderLock,
    RedisOrderLock,
    get_order_lock,
    shutdown_order_lock,
)

__all__ = [
    "LocalOrderLock",
    "RedisOrderLock",
    "get_order_lock",
    "shutdown_order_lock",
]
