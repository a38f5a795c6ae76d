"""
支付方式可用性判断（纯函数，不依赖配置对象）
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Union


AVAILABLE_COUNTRIES = frozenset({"US", "AS", "GU", "MP", "PR", "VI", "CA"})

DEFAULT_MIN_TOTAL = Decimal("1")
DEFAULT_MAX_TOTAL = Decimal("300000")

Number = Union[Decimal, int, float, str]


def _as_decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def is_available(
    total: Number,
    customer_country: Optional[str],
    configured_min: Optional[Number] = None,
    configured_max: Optional[Number] = None,
    enabled: bool = True,
) -> bool:
    """是否向当前购物车展示该支付方式。

    - 未启用：不可用
    - 国家不在支持列表（空国家视为未知，允许）
    - 金额低于最小值或高于最大值；min/max 未配置（None 或 0）时取默认 1 / 300000
    """
    if not enabled:
        return False
    country = (customer_country or "").strip().upper()
    if country and country not in AVAILABLE_COUNTRIES:
        return False
    amount = _as_decimal(total)
    minimum = _as_decimal(configured_min) if configured_min else DEFAULT_MIN_TOTAL
    maximum = _as_decimal(configured_max) if configured_max else DEFAULT_MAX_TOTAL
    if amount < minimum:
        return False
    if amount > maximum:
        return False
    return True
