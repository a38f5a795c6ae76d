"""扣款记录仓储接口"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from domain.charge.entity import OrderChargeRecord


class ChargeRecordRepository(ABC):
    """扣款记录仓储抽象

    save 需做乐观并发校验：记录的 version 与存储不一致时抛出
    ConcurrentChargeUpdateError，成功后返回版本号递增后的记录。
    """

    @abstractmethod
    async def get(self, order_id: str) -> Optional[OrderChargeRecord]:
        ...

    @abstractmethod
    async def save(self, record: OrderChargeRecord) -> OrderChargeRecord:
        ...

    async def get_or_create(self, order_id: str) -> OrderChargeRecord:
        record = await self.get(order_id)
        return record if record is not None else OrderChargeRecord(order_id=order_id)
