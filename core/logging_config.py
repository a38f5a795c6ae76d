"""
Structlog 日志配置模块

标准库 logging（uvicorn、celery、httpx）与 structlog 走同一条处理链。
"""
import json
import logging
from typing import Any, List

import structlog
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, TimeStamper, add_log_level
from structlog.stdlib import ProcessorFormatter

from core.config import settings
from core.settings import payment_settings


# 网关相关 logger；商户打开 debug 时输出请求/响应细节
GATEWAY_LOGGERS = (
    "infrastructure.external.payments",
    "application.services.charge_service",
    "application.services.checkout_service",
)

# 日志里永远不能出现的字段（密钥、结账令牌、一次性 nonce）
SENSITIVE_KEYS = frozenset({
    "private_key",
    "private_api_key",
    "checkout_token",
    "nonce",
    "order_key",
    "authorization",
    "x-admin-token",
})

_MASK = "***"


def _mask(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: (_MASK if str(k).lower() in SENSITIVE_KEYS else _mask(v)) for k, v in value.items()}
    if isinstance(value, list):
        return [_mask(v) for v in value]
    return value


def redact_sensitive(_logger: Any, _method: str, event_dict: dict) -> dict:
    """structlog 处理器：递归屏蔽敏感字段（网关 debug 日志会带上请求体）"""
    return _mask(event_dict)


def get_renderer() -> Any:
    """根据环境选择渲染器 (Console in DEBUG, JSON otherwise)."""
    if settings.DEBUG:
        return ConsoleRenderer(colors=True)

    # structlog 会传入 default/sort_keys 等参数
    def _dumps(obj, default=None, **kwargs):
        return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)
    return JSONRenderer(serializer=_dumps)


def configure_logging() -> None:
    """配置 structlog 并桥接标准库 logging；网关 logger 级别跟随 AFFIRM__DEBUG。"""
    shared_pre_chain: List[Any] = [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*shared_pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=shared_pre_chain,
            processors=[ProcessorFormatter.remove_processors_meta, get_renderer()],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    # httpx 每个请求都会打一行 INFO，交给网关自己的日志
    logging.getLogger("httpx").setLevel(logging.WARNING)

    gateway_level = logging.DEBUG if payment_settings.affirm.debug else logging.INFO
    for name in GATEWAY_LOGGERS:
        logging.getLogger(name).setLevel(gateway_level)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


configure_logging()
