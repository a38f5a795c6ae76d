"""
扣款记录仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from core.logging_config import get_logger
from domain.charge.entity import OrderChargeRecord
from domain.charge.exceptions import ConcurrentChargeUpdateError
from domain.charge.repository import ChargeRecordRepository
from infrastructure.models.order import ChargeRecordModel


logger = get_logger(__name__)

_LEDGER_FIELDS = (
    "charge_id",
    "authorized_amount",
    "captured_total",
    "refunded_total",
    "fee_amount",
    "auth_only",
    "partial_capture_enabled",
    "partially_captured",
    "voided",
    "checkout_nonce",
)


class SQLAlchemyChargeRecordRepository(ChargeRecordRepository):
    """扣款记录仓储的SQLAlchemy实现（version 列乐观锁）"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: ChargeRecordModel) -> OrderChargeRecord:
        """将数据库模型转换为领域实体"""
        return OrderChargeRecord(
            order_id=model.order_id,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
            **{name: getattr(model, name) for name in _LEDGER_FIELDS},
        )

    async def get(self, order_id: str) -> Optional[OrderChargeRecord]:
        model = await self.session.get(ChargeRecordModel, order_id)
        return self._to_entity(model) if model else None

    async def save(self, record: OrderChargeRecord) -> OrderChargeRecord:
        """插入或更新；版本不一致时抛出 ConcurrentChargeUpdateError"""
        model = await self.session.get(ChargeRecordModel, record.order_id)
        try:
            if model is None:
                if record.version:
                    raise ConcurrentChargeUpdateError(record.order_id)
                model = ChargeRecordModel(
                    order_id=record.order_id,
                    **{name: getattr(record, name) for name in _LEDGER_FIELDS},
                )
                self.session.add(model)
            else:
                if model.version != record.version:
                    raise ConcurrentChargeUpdateError(record.order_id)
                for name in _LEDGER_FIELDS:
                    setattr(model, name, getattr(record, name))
            await self.session.flush()
        except (StaleDataError, IntegrityError) as exc:
            logger.warning("charge_record_conflict", order_id=record.order_id, error=str(exc))
            raise ConcurrentChargeUpdateError(record.order_id) from exc

        await self.session.refresh(model)
        record.version = model.version
        logger.info(
            "charge_record_saved",
            order_id=record.order_id,
            version=record.version,
            state=record.state.value,
        )
        return record
