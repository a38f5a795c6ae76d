"""
FastAPI应用主入口
"""
import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LocaleMiddleware, LoggingMiddleware, RequestIDMiddleware
from api.routes import checkout as checkout_routes
from api.routes import orders as orders_routes
from api.routes import payments as payments_routes
from core.config import settings
from core.exceptions import register_exception_handlers
from core.i18n import t
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from core.settings import payment_settings
from infrastructure.cache import shutdown_order_lock
from infrastructure.database import create_tables, dispose_engine
from infrastructure.external.payments import shutdown_charge_gateway
from infrastructure.tasks import shutdown_dispatcher


configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 开发环境自动建表；生产环境由部署流程负责建表
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")

    for warning in payment_settings.configuration_warnings():
        logger.warning("payment_configuration_warning", warning=warning)
    if not payment_settings.is_valid_for_use():
        logger.warning("payment_method_disabled", currency=payment_settings.store_currency)

    yield

    await shutdown_charge_gateway()
    await shutdown_order_lock()
    await asyncio.to_thread(shutdown_dispatcher)
    await dispose_engine()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Affirm installment charges: checkout, capture, void and refund",
)

# 添加中间件（注意顺序：从下往上执行）
app.add_middleware(LoggingMiddleware)
app.add_middleware(LocaleMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(payments_routes.router, prefix=settings.API_PREFIX)
app.include_router(checkout_routes.router, prefix=settings.API_PREFIX)
app.include_router(orders_routes.router, prefix=settings.API_PREFIX)


@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(
        data={"status": "healthy", "payment_method_available": payment_settings.is_valid_for_use()},
        message=t("health.ok"),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
