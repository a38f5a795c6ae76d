"""SQLAlchemy Unit of Work 实现"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from core.logging_config import get_logger
from domain.charge.exceptions import ConcurrentChargeUpdateError
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal
from infrastructure.repositories.charge_repository import SQLAlchemyChargeRecordRepository
from infrastructure.repositories.order_repository import SQLAlchemyOrderRepository


logger = get_logger(__name__)


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """一个 AsyncSession 对应一个事务；只读模式不开启事务也不提交。"""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        session: Optional[AsyncSession] = None,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self._owns_session = session is None
        self.session: Optional[AsyncSession] = session

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self.session is None:
            self.session = self._session_factory()
        self.order_repository = SQLAlchemyOrderRepository(self.session)
        self.charge_repository = SQLAlchemyChargeRecordRepository(self.session)
        if not self._readonly:
            await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            if self._owns_session and self.session is not None:
                await self.session.close()
                self.session = None
            self.order_repository = None
            self.charge_repository = None

    async def commit(self) -> None:
        if not self._readonly and self.session is not None and self.session.in_transaction():
            try:
                await self.session.commit()
            except StaleDataError as exc:
                # 提交时 flush 才发现 version_id 已被其他事务推进
                logger.warning("charge_commit_conflict", error=str(exc))
                await self.session.rollback()
                raise ConcurrentChargeUpdateError() from exc
        self._committed = True

    async def rollback(self) -> None:
        if self.session is not None and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False
