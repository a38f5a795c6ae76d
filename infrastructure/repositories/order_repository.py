"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import OrderAlreadyExistsException, OrderNotFoundException
from domain.order.entity import Order, OrderNote, OrderStatus
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel, OrderNoteModel


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        """将数据库模型转换为领域实体"""
        return Order(
            id=model.id,
            order_key=model.order_key,
            total=Decimal(str(model.total)),
            currency=model.currency,
            status=OrderStatus(model.status),
            payment_method=model.payment_method,
            transaction_id=model.transaction_id,
            billing_country=model.billing_country,
            notes=[OrderNote(id=n.id, content=n.content, created_at=n.created_at) for n in model.notes],
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
        )

    async def get(self, order_id: str) -> Optional[Order]:
        model = await self.session.get(OrderModel, order_id)
        return self._to_entity(model) if model else None

    async def add(self, order: Order) -> Order:
        model = OrderModel(
            id=order.id,
            order_key=order.order_key,
            total=order.total,
            currency=order.currency,
            status=order.status.value,
            payment_method=order.payment_method,
            transaction_id=order.transaction_id,
            billing_country=order.billing_country,
        )
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            logger.warning("order_create_conflict", order_id=order.id)
            raise OrderAlreadyExistsException(order.id) from exc
        await self.session.refresh(model)
        logger.info("order_created", order_id=order.id, total=str(order.total), currency=order.currency)
        return self._to_entity(model)

    async def save(self, order: Order) -> Order:
        model = await self.session.get(OrderModel, order.id)
        if model is None:
            raise OrderNotFoundException(order.id)

        model.status = order.status.value
        model.transaction_id = order.transaction_id
        model.paid_at = order.paid_at

        # 备注只追加：id 为空的是本次新增
        pending = [note for note in order.notes if note.id is None]
        note_models = [OrderNoteModel(content=note.content, created_at=note.created_at) for note in pending]
        model.notes.extend(note_models)

        await self.session.flush()
        for note, note_model in zip(pending, note_models):
            note.id = note_model.id

        logger.info("order_updated", order_id=order.id, status=model.status, new_notes=len(pending))
        return order
