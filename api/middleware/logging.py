"""
请求/响应日志中间件
记录每个HTTP请求的耗时与状态码；结账回跳参数（token、nonce、order_key）一律脱敏
"""
import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging_config import SENSITIVE_KEYS, get_logger


logger = get_logger(__name__)

# 结账跳转链接里的 key= 即 order_key
SENSITIVE_QUERY_PARAMS = SENSITIVE_KEYS | {"key", "token"}


def sanitize_query(params: dict) -> dict:
    return {k: ("***" if k.lower() in SENSITIVE_QUERY_PARAMS else v) for k, v in params.items()}


class LoggingMiddleware(BaseHTTPMiddleware):
    """按状态码分级记录请求；未处理异常记录后继续抛出"""

    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        request_info = {
            "method": request.method,
            "path": request.url.path,
            "query_params": sanitize_query(dict(request.query_params)),
        }
        logger.info("request_started", **request_info)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration=time.perf_counter() - started,
                error_type=type(exc).__name__,
                **request_info,
                exc_info=True,
            )
            raise

        duration = time.perf_counter() - started
        self._log_response(response, duration, request_info)
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        return response

    @staticmethod
    def _log_response(response: Response, duration: float, request_info: dict) -> None:
        status_code = response.status_code
        log_data = {"status_code": status_code, "duration": round(duration, 4), **request_info}
        if response.headers.get("location"):
            # 只记录跳转路径，查询串里可能有 nonce
            log_data["redirect"] = response.headers["location"].split("?", 1)[0]
        if status_code < 400:
            logger.info("request_completed", **log_data)
        elif status_code < 500:
            logger.warning("request_client_error", **log_data)
        else:
            logger.error("request_server_error", **log_data)
