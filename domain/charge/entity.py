"""
订单扣款记录 - 扣款生命周期的账本与状态

金额全部为整数分。状态由字段推导，不单独存储，避免字段与状态不一致。
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException
from domain.charge.exceptions import InvalidCaptureAmountError, InvalidChargeTransitionError


class ChargeState(str, Enum):
    """扣款状态（由账本字段推导）"""
    UNAUTHORIZED = "unauthorized"
    AUTHORIZED = "authorized"
    PARTIALLY_CAPTURED = "partially_captured"
    CAPTURED = "captured"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"
    VOIDED = "voided"


# 持久化到订单元数据时使用的字段名（会加上网关前缀）
META_KEYS = (
    "charge_id",
    "authorized_amount",
    "captured_total",
    "fee_amount",
    "authorized_only",
    "partial_capture_enabled",
    "partially_captured",
    "checkout_nonce",
)


@dataclass
class OrderChargeRecord:
    """
    订单扣款记录

    业务规则：
    1. 0 <= captured_total <= authorized_amount
    2. charge_id 只在授权成功时写入一次，之后不可更改
    3. 全额请款后清除 auth_only
    4. 仅在 auth_only 且尚未请款时可以撤销（void）
    5. 退款总额不超过已请款总额
    """

    order_id: str
    charge_id: Optional[str] = None
    authorized_amount: int = 0
    captured_total: int = 0
    refunded_total: int = 0
    fee_amount: int = 0
    auth_only: bool = False
    partial_capture_enabled: bool = False
    partially_captured: bool = False
    voided: bool = False
    checkout_nonce: Optional[str] = None
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        for name in ("authorized_amount", "captured_total", "refunded_total"):
            if getattr(self, name) < 0:
                raise DomainValidationException(f"{name} must not be negative", field=name)
        if self.captured_total > self.authorized_amount:
            raise DomainValidationException(
                "captured_total exceeds authorized_amount", field="captured_total"
            )
        if self.refunded_total > self.captured_total:
            raise DomainValidationException(
                "refunded_total exceeds captured_total", field="refunded_total"
            )
        self.fee_amount = max(self.fee_amount, 0)

    # ----- 推导属性 -----

    @property
    def is_authorized(self) -> bool:
        return bool(self.charge_id)

    @property
    def remaining_authorization(self) -> int:
        return self.authorized_amount - self.captured_total

    @property
    def refundable_balance(self) -> int:
        return self.captured_total - self.refunded_total

    @property
    def fully_captured(self) -> bool:
        return self.is_authorized and self.captured_total == self.authorized_amount

    @property
    def state(self) -> ChargeState:
        if not self.is_authorized:
            return ChargeState.UNAUTHORIZED
        if self.voided:
            return ChargeState.VOIDED
        if self.refunded_total:
            if self.refunded_total >= self.captured_total:
                return ChargeState.REFUNDED
            return ChargeState.PARTIALLY_REFUNDED
        if self.captured_total == 0:
            return ChargeState.AUTHORIZED
        if self.captured_total < self.authorized_amount:
            return ChargeState.PARTIALLY_CAPTURED
        return ChargeState.CAPTURED

    # ----- 状态迁移 -----

    def record_authorization(self, charge_id: str, amount: int, *, partial_capture_enabled: bool = False) -> None:
        """记录授权结果；同一 charge_id 重复记录视为幂等。"""
        if not charge_id:
            raise DomainValidationException("charge_id is required", field="charge_id")
        if self.charge_id and self.charge_id != charge_id:
            raise InvalidChargeTransitionError("authorize", self.state.value)
        if self.charge_id == charge_id:
            return
        if amount <= 0:
            raise DomainValidationException("authorized amount must be positive", field="authorized_amount")
        self.charge_id = charge_id
        self.authorized_amount = amount
        self.partial_capture_enabled = partial_capture_enabled
        self._touch()

    def mark_auth_only(self) -> None:
        if not self.is_authorized:
            raise InvalidChargeTransitionError("hold for capture", self.state.value)
        self.auth_only = True
        self._touch()

    def resolve_capture_amount(self, amount: int = 0) -> int:
        """0 表示请款剩余全部授权额度；显式金额需满足部分请款规则。"""
        if not self.is_authorized or self.voided:
            raise InvalidChargeTransitionError("capture", self.state.value)
        remaining = self.remaining_authorization
        if remaining <= 0:
            raise InvalidChargeTransitionError("capture", self.state.value)
        if not amount:
            return remaining
        if amount < 0 or amount > remaining:
            raise InvalidCaptureAmountError(amount, remaining, reason="exceeds remaining authorization")
        if amount < remaining and not self.partial_capture_enabled:
            raise InvalidCaptureAmountError(amount, remaining, reason="partial capture disabled")
        return amount

    def apply_capture(self, captured_amount: int, fee: int = 0) -> bool:
        """记入一次请款，返回是否已全额请款。"""
        if not self.is_authorized or self.voided:
            raise InvalidChargeTransitionError("capture", self.state.value)
        if captured_amount <= 0 or captured_amount > self.remaining_authorization:
            raise InvalidCaptureAmountError(
                captured_amount, self.remaining_authorization, reason="provider amount out of range"
            )
        self.captured_total += captured_amount
        self.fee_amount = max(self.fee_amount + fee, 0)
        self.partially_captured = 0 < self.captured_total < self.authorized_amount
        if self.fully_captured:
            self.auth_only = False
        self._touch()
        return self.fully_captured

    def can_void(self) -> bool:
        return self.is_authorized and self.auth_only and self.captured_total == 0 and not self.voided

    def mark_voided(self) -> None:
        if not self.can_void():
            raise InvalidChargeTransitionError("void", self.state.value)
        self.auth_only = False
        self.voided = True
        self._touch()

    def apply_refund(self, amount: int, fee_refunded: int = 0) -> None:
        """记入一次退款；手续费按渠道返回的 fee_refunded 冲减，最低为 0。"""
        if self.voided or not self.is_authorized:
            raise InvalidChargeTransitionError("refund", self.state.value)
        if amount <= 0:
            raise DomainValidationException("refund amount must be positive", field="amount")
        if amount > self.refundable_balance:
            raise DomainValidationException("refund exceeds captured balance", field="amount")
        self.refunded_total += amount
        self.fee_amount = max(self.fee_amount - fee_refunded, 0)
        if self.refundable_balance == 0:
            self.auth_only = False
        self._touch()

    # ----- 结账 nonce -----

    def issue_nonce(self) -> str:
        self.checkout_nonce = secrets.token_urlsafe(24)
        self._touch()
        return self.checkout_nonce

    def nonce_matches(self, nonce: Optional[str]) -> bool:
        if not self.checkout_nonce or not nonce:
            return False
        return secrets.compare_digest(self.checkout_nonce, nonce)

    def consume_nonce(self, nonce: Optional[str]) -> bool:
        """校验并作废 nonce；不匹配时返回 False 且不修改记录。"""
        if not self.nonce_matches(nonce):
            return False
        self.checkout_nonce = None
        self._touch()
        return True

    # ----- 序列化 -----

    def to_meta(self, gateway_id: str = "affirm") -> dict[str, Any]:
        """导出为带网关前缀的订单元数据，例如 ``_affirm_charge_id``。"""
        values = {
            "charge_id": self.charge_id,
            "authorized_amount": self.authorized_amount,
            "captured_total": self.captured_total,
            "fee_amount": self.fee_amount,
            "authorized_only": self.auth_only,
            "partial_capture_enabled": self.partial_capture_enabled,
            "partially_captured": self.partially_captured,
            "checkout_nonce": self.checkout_nonce,
        }
        return {f"_{gateway_id}_{key}": values[key] for key in META_KEYS}

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
