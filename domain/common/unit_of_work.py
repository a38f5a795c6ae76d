"""Unit of Work 抽象定义

订单与其收单记录总是在同一个事务里读写：收单状态变化往往伴随订单状态或备注变化。
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.charge.entity import OrderChargeRecord
from domain.charge.repository import ChargeRecordRepository
from domain.common.exceptions import OrderNotFoundException
from domain.order.entity import Order
from domain.order.repository import OrderRepository


class AbstractUnitOfWork(ABC):
    """应用层事务边界控制抽象"""

    order_repository: OrderRepository
    charge_repository: ChargeRecordRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly
        self.order_repository = None  # type: ignore[assignment]
        self.charge_repository = None  # type: ignore[assignment]

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc:
            await self.rollback()
        elif not self._readonly and not self._committed:
            await self.commit()

    async def load_order_charge(self, order_id: str) -> tuple[Order, OrderChargeRecord]:
        """读取订单及其收单记录；记录不存在时返回一条未授权的空记录"""
        order = await self.order_repository.get(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        record = await self.charge_repository.get_or_create(order_id)
        return order, record

    async def save_order_charge(self, order: Order, record: OrderChargeRecord) -> None:
        # 先写收单记录：版本冲突时订单不会被改动
        await self.charge_repository.save(record)
        await self.order_repository.save(order)

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...
