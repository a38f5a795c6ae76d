"""
API依赖项 - 服务装配与管理端鉴权
"""
import secrets
from typing import Optional

from fastapi import Depends, Header

from application.services.availability_service import AvailabilityService
from application.services.charge_service import ChargeLifecycleService
from application.services.checkout_service import CheckoutService
from application.services.error_tracker import ErrorTracker
from application.services.order_service import OrderApplicationService
from core.config import settings
from core.exceptions import UnauthorizedException
from infrastructure.cache import get_order_lock
from infrastructure.external.payments import get_charge_gateway
from infrastructure.tasks import TaskDispatcher
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


async def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> None:
    """校验管理端令牌；未配置 ADMIN_API_TOKEN 时拒绝所有管理端请求"""
    expected = settings.ADMIN_API_TOKEN
    if not expected or not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise UnauthorizedException()


def get_error_tracker() -> ErrorTracker:
    return ErrorTracker(sink=TaskDispatcher())


def get_availability_service() -> AvailabilityService:
    return AvailabilityService()


def get_order_service() -> OrderApplicationService:
    return OrderApplicationService(uow_factory=SQLAlchemyUnitOfWork)


def get_charge_service(tracker: ErrorTracker = Depends(get_error_tracker)) -> ChargeLifecycleService:
    return ChargeLifecycleService(
        uow_factory=SQLAlchemyUnitOfWork,
        gateway=get_charge_gateway(),
        tracker=tracker,
        lock=get_order_lock(),
    )


def get_checkout_service(
    charges: ChargeLifecycleService = Depends(get_charge_service),
    tracker: ErrorTracker = Depends(get_error_tracker),
) -> CheckoutService:
    return CheckoutService(
        uow_factory=SQLAlchemyUnitOfWork,
        charges=charges,
        tracker=tracker,
        lock=get_order_lock(),
    )
