"""Registers shop orders so the checkout flow and admin actions can find them."""
from __future__ import annotations

from typing import Callable

from application.dtos.charges import OrderCreate, OrderView
from core.logging_config import get_logger
from domain.common.exceptions import OrderNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order


logger = get_logger(__name__)


class OrderApplicationService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    @staticmethod
    def to_view(order: Order) -> OrderView:
        return OrderView(
            id=order.id,
            status=order.status.value,
            total=order.total,
            currency=order.currency,
            transaction_id=order.transaction_id,
            billing_country=order.billing_country,
            notes=[note.content for note in order.notes],
        )

    async def register(self, payload: OrderCreate) -> OrderView:
        order = Order(
            id=payload.id,
            order_key=payload.order_key,
            total=payload.total,
            currency=payload.currency,
            billing_country=payload.billing_country,
        )
        async with self._uow_factory() as uow:
            order = await uow.order_repository.add(order)
        logger.info("order_registered", order_id=order.id, total=str(order.total), currency=order.currency)
        return self.to_view(order)

    async def get(self, order_id: str) -> OrderView:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        return self.to_view(order)
