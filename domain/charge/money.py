"""
金额工具：账本内部一律使用整数分（cents），仅在展示边界转换为主单位。
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from domain.charge.exceptions import UnsupportedCurrencyError


Amount = Union[Decimal, int, str, float]

CENT = Decimal("0.01")

# 货币 -> (alpha-2, alpha-3) 国家代码
COUNTRY_BY_CURRENCY: dict[str, tuple[str, str]] = {
    "USD": ("US", "USA"),
    "CAD": ("CA", "CAN"),
}

_SYMBOLS = {"USD": "$", "CAD": "$"}


def to_cents(amount: Amount) -> int:
    """主单位金额转整数分（四舍五入）。float 先经 str 转换，避免二进制误差。"""
    if isinstance(amount, bool):
        raise TypeError("amount must be numeric, not bool")
    if isinstance(amount, int):
        return amount * 100
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """整数分转主单位 Decimal（两位小数）。"""
    return (Decimal(cents) / 100).quantize(CENT)


def format_money(cents: int, currency: str = "USD") -> str:
    """展示用金额字符串，例如 10000 -> "$100.00"。"""
    symbol = _SYMBOLS.get(currency.upper(), "")
    sign = "-" if cents < 0 else ""
    return f"{sign}{symbol}{from_cents(abs(cents)):,.2f}"


def within_tolerance(a: int, b: int, tolerance: int = 1) -> bool:
    """两个分值之差是否在容差内（默认 1 分）。"""
    return abs(a - b) <= tolerance


def country_for_currency(currency: str) -> tuple[str, str]:
    """按订单货币推导国家代码；不支持的货币抛出 UnsupportedCurrencyError。"""
    key = (currency or "").upper()
    try:
        return COUNTRY_BY_CURRENCY[key]
    except KeyError:
        raise UnsupportedCurrencyError(key) from None
