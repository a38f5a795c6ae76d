"""
订单实体 - 商城订单系统在本服务中的最小映射

订单归属外部商城；这里只保留扣款流程需要读写的字段（状态、交易号、备注）。
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException
from domain.charge.money import to_cents


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "pending"           # 待支付
    ON_HOLD = "on_hold"           # 已授权待请款
    PROCESSING = "processing"     # 已支付
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


@dataclass
class OrderNote:
    content: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None


@dataclass
class Order:
    id: str
    order_key: str
    total: Decimal
    currency: str = "USD"
    status: OrderStatus = OrderStatus.PENDING
    payment_method: str = "affirm"
    transaction_id: Optional[str] = None
    billing_country: Optional[str] = None
    notes: list[OrderNote] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.total, Decimal):
            self.total = Decimal(str(self.total))
        if self.total < 0:
            raise DomainValidationException("order total must not be negative", field="total")
        self.currency = (self.currency or "").upper()
        if len(self.currency) != 3:
            raise DomainValidationException(f"invalid currency: {self.currency}", field="currency")

    @property
    def total_cents(self) -> int:
        return to_cents(self.total)

    def needs_payment(self) -> bool:
        return self.status in (OrderStatus.PENDING, OrderStatus.FAILED) and self.total > 0

    def key_is_valid(self, key: Optional[str]) -> bool:
        return bool(key) and secrets.compare_digest(self.order_key, key)

    def add_note(self, content: str) -> OrderNote:
        note = OrderNote(content=content)
        self.notes.append(note)
        self._touch()
        return note

    def update_status(self, status: OrderStatus, note: Optional[str] = None) -> None:
        self.status = status
        if note:
            self.add_note(note)
        self._touch()

    def set_transaction_id(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        self._touch()

    def payment_complete(self, transaction_id: Optional[str] = None) -> None:
        """标记订单已付款（进入 processing），记录交易号。"""
        if transaction_id:
            self.transaction_id = transaction_id
        if self.status in (OrderStatus.PENDING, OrderStatus.FAILED, OrderStatus.ON_HOLD):
            self.status = OrderStatus.PROCESSING
            self.paid_at = datetime.now(timezone.utc)
        self._touch()

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
