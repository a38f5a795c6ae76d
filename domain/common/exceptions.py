"""领域层业务异常定义，供领域与基础设施使用。

订单相关的通用异常放在这里；收单生命周期的异常见 ``domain.charge.exceptions``。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类

    message 为英文原文（写日志用），message_key 为对外展示时的翻译键。
    """

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        message_key: Optional[str] = None,
        format_params: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        self.message_key = message_key
        self.format_params = format_params
        super().__init__(self.message)


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: Optional[str] = None):
        super().__init__(
            code=BusinessCode.ORDER_NOT_FOUND,
            message="Order not found",
            error_type="OrderNotFound",
            details={"order_id": order_id} if order_id else None,
            message_key="order.not_found",
        )


class OrderAlreadyExistsException(BusinessException):
    def __init__(self, order_id: str):
        super().__init__(
            code=BusinessCode.CONFLICT,
            message=f"Order {order_id} already exists",
            error_type="OrderAlreadyExists",
            details={"order_id": order_id},
            message_key="order.already_exists",
        )


class DomainValidationException(BusinessException):
    """实体不变量被破坏（负金额、非法币种等）"""

    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
            message_key="validation.domain",
        )
