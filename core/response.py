"""
统一响应格式定义

所有接口返回 ``{code, message, data, error}`` 信封；金额字段保持整数分，
展示层自行换算。
"""
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, field_serializer

from core.i18n import t
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode


T = TypeVar("T")


def _utc_iso(ts: datetime) -> str:
    ts = ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts.astimezone(timezone.utc)
    return ts.isoformat().replace("+00:00", "Z")


class ErrorDetail(BaseModel):
    """错误详情"""
    type: str
    details: Optional[dict] = None
    field: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        return _utc_iso(timestamp)


class Response(BaseModel, Generic[T]):
    """统一响应模型"""
    code: int
    message: str
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None


def success_response(data: Any = None, message: str = "Success", code: int = BusinessCode.SUCCESS) -> Response:
    """创建成功响应；message 应已经过 t() 翻译"""
    return Response(code=code, message=message, data=data)


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Response:
    """创建错误响应"""
    return Response(
        code=code,
        message=message,
        error=ErrorDetail(type=error_type, details=details, field=field, request_id=request_id),
    )


def business_error_response(exc: BusinessException, request_id: Optional[str] = None) -> Response:
    """
    把业务异常转换为错误响应

    有 message_key 时按当前语言翻译，否则原样使用异常消息。
    网关原始错误只放在 details 中，不进入 message。
    """
    params = exc.format_params if isinstance(exc.format_params, dict) else {}
    message = t(exc.message_key, **params) if exc.message_key else exc.message
    return error_response(
        code=exc.code,
        message=message,
        error_type=exc.error_type,
        details=exc.details,
        field=exc.field,
        request_id=request_id,
    )
