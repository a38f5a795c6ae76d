"""订单仓储接口"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from domain.order.entity import Order


class OrderRepository(ABC):

    @abstractmethod
    async def get(self, order_id: str) -> Optional[Order]:
        ...

    @abstractmethod
    async def add(self, order: Order) -> Order:
        ...

    @abstractmethod
    async def save(self, order: Order) -> Order:
        """持久化状态、交易号，并追加尚未保存的备注。"""
        ...
