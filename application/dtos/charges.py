"""
Charge DTOs (Pydantic v2) used at application boundaries.

All amounts are integer cents unless a field name says otherwise.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TokenExchangeResult(BaseModel):
    charge_id: str
    validates: bool
    amount_validation: bool
    authorized_amount: int = Field(ge=0)
    raw: Optional[dict[str, Any]] = None


class CaptureResult(BaseModel):
    captured_amount: int = Field(ge=0)
    fee: int = 0
    event_id: Optional[str] = None


class RefundResult(BaseModel):
    refund_id: str
    amount: int = Field(ge=0)
    fee_refunded: int = 0


class RefundOutcome(BaseModel):
    """What a refund request ended up doing: a real refund or a void of the authorization."""

    action: Literal["refund", "void"]
    amount: int
    refund_id: Optional[str] = None


class ChargeView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    state: str
    charge_id: Optional[str] = None
    authorized_amount: int
    captured_total: int
    refunded_total: int
    fee_amount: int
    remaining_authorization: int
    auth_only: bool
    partial_capture_enabled: bool
    partially_captured: bool
    voided: bool
    transaction_url: Optional[str] = None
    meta: dict[str, Any] = Field(default_factory=dict)


class CaptureRequest(BaseModel):
    amount: int = Field(default=0, ge=0, description="Cents; 0 captures the remaining authorization")


class RefundRequest(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0, description="Major units; defaults to the order total")
    reason: str = ""

    @field_validator("reason")
    @classmethod
    def _strip_reason(cls, v: str) -> str:
        return (v or "").strip()


class OrderCreate(BaseModel):
    id: str = Field(min_length=1, max_length=100)
    order_key: str = Field(min_length=1, max_length=100)
    total: Decimal = Field(ge=0)
    currency: str = "USD"
    billing_country: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        u = (v or "").upper()
        if len(u) != 3 or not u.isalpha():
            raise ValueError("currency must be ISO-4217 alpha-3")
        return u


class Availability(BaseModel):
    available: bool
    reason: Optional[str] = None


class CheckoutStart(BaseModel):
    order_id: str
    redirect_url: str
    nonce: str


class CheckoutBootstrap(BaseModel):
    """Checkout object handed to the provider's hosted checkout (modal or redirect)."""

    checkout_mode: Literal["modal", "redirect"]
    public_api_key: Optional[str]
    merchant: dict[str, Any]
    order_id: str
    currency: str
    total: int
    metadata: dict[str, Any] = Field(default_factory=dict)


class CheckoutResult(BaseModel):
    redirect_url: str
    notice: Optional[str] = None
    ignored: bool = False
    success: bool = False


class OrderView(BaseModel):
    id: str
    status: str
    total: Decimal
    currency: str
    transaction_id: Optional[str] = None
    billing_country: Optional[str] = None
    notes: list[str] = Field(default_factory=list)
