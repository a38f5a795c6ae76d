"""
订单与扣款记录数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Boolean, Column, Integer, String, Numeric, DateTime, Text,
    ForeignKey, Index,
)
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin, utcnow


class OrderModel(TimestampMixin, Base):
    """
    订单数据库模型

    订单由外部商城系统创建，这里只同步扣款流程需要的字段
    """
    __tablename__ = "orders"

    id = Column(String(100), primary_key=True, comment="订单ID")
    order_key = Column(String(100), nullable=False, comment="订单校验 key")
    total = Column(Numeric(precision=15, scale=2), nullable=False, comment="订单总额（主单位）")
    currency = Column(String(3), nullable=False, default="USD", comment="货币代码 ISO-4217")
    status = Column(
        String(30),
        nullable=False,
        default="pending",
        index=True,
        comment="订单状态: pending/on_hold/processing/completed/cancelled/refunded/failed",
    )
    payment_method = Column(String(50), nullable=False, default="affirm", comment="支付方式")
    transaction_id = Column(String(100), nullable=True, index=True, comment="渠道交易号（charge id）")
    billing_country = Column(String(2), nullable=True, comment="账单国家")

    paid_at = Column(DateTime(timezone=True), nullable=True, comment="付款时间")

    notes = relationship(
        "OrderNoteModel",
        back_populates="order",
        lazy="selectin",
        order_by="OrderNoteModel.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<OrderModel(id='{self.id}', total={self.total}, status='{self.status}')>"


class OrderNoteModel(Base):
    """订单备注（只追加）"""
    __tablename__ = "order_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        String(100), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True, comment="订单ID"
    )
    content = Column(Text, nullable=False, comment="备注内容")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, comment="创建时间")

    order = relationship("OrderModel", back_populates="notes")


class ChargeRecordModel(TimestampMixin, Base):
    """
    扣款记录数据库模型

    金额字段均为整数分；version 列由 SQLAlchemy 做乐观锁校验
    """
    __tablename__ = "charge_records"

    order_id = Column(
        String(100), ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True, comment="订单ID"
    )
    charge_id = Column(String(100), nullable=True, unique=True, comment="渠道 charge id，授权成功后写入")
    authorized_amount = Column(Integer, nullable=False, default=0, comment="授权金额（分）")
    captured_total = Column(Integer, nullable=False, default=0, comment="累计请款（分）")
    refunded_total = Column(Integer, nullable=False, default=0, comment="累计退款（分）")
    fee_amount = Column(Integer, nullable=False, default=0, comment="手续费净额（分）")
    auth_only = Column(Boolean, nullable=False, default=False, comment="仅授权待请款")
    partial_capture_enabled = Column(Boolean, nullable=False, default=False, comment="允许部分请款")
    partially_captured = Column(Boolean, nullable=False, default=False, comment="已部分请款")
    voided = Column(Boolean, nullable=False, default=False, comment="授权已撤销")
    checkout_nonce = Column(String(64), nullable=True, comment="结账一次性 nonce")
    version = Column(Integer, nullable=False, default=0, comment="乐观锁版本")


    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_charge_records_auth_only", "auth_only"),
    )

    def __repr__(self):
        return (
            f"<ChargeRecordModel(order_id='{self.order_id}', charge_id='{self.charge_id}', "
            f"captured={self.captured_total}/{self.authorized_amount})>"
        )
