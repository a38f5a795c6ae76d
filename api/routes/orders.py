"""
Admin order routes: register orders and drive the charge lifecycle.

Every route requires the ``X-Admin-Token`` header.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status

from api.dependencies import get_charge_service, get_order_service, require_admin
from application.dtos.charges import CaptureRequest, OrderCreate, RefundRequest
from application.services.charge_service import ChargeLifecycleService
from application.services.order_service import OrderApplicationService
from domain.charge.exceptions import CaptureDeclinedError
from core.i18n import t
from core.response import success_response


router = APIRouter(prefix="/orders", tags=["Orders"], dependencies=[Depends(require_admin)])


@router.post("", status_code=status.HTTP_201_CREATED, summary="Register an order")
async def register_order(payload: OrderCreate, service: OrderApplicationService = Depends(get_order_service)):
    order = await service.register(payload)
    return success_response(data=order.model_dump(mode="json"))


@router.get("/{order_id}", summary="Order with its notes")
async def get_order(order_id: str, service: OrderApplicationService = Depends(get_order_service)):
    order = await service.get(order_id)
    return success_response(data=order.model_dump(mode="json"))


@router.get("/{order_id}/charge", summary="Charge ledger for an order")
async def get_charge(order_id: str, service: ChargeLifecycleService = Depends(get_charge_service)):
    view = await service.get_charge(order_id)
    return success_response(data=view.model_dump(mode="json"))


@router.post("/{order_id}/charge/capture", summary="Capture an authorized charge")
async def capture_charge(
    order_id: str,
    payload: Optional[CaptureRequest] = None,
    service: ChargeLifecycleService = Depends(get_charge_service),
):
    payload = payload or CaptureRequest()
    captured = await service.capture(order_id, payload.amount)
    view = await service.get_charge(order_id)
    if not captured:
        raise CaptureDeclinedError(view.charge_id)
    return success_response(data=view.model_dump(mode="json"), message=t("charge.captured"))


@router.post("/{order_id}/charge/void", summary="Void an uncaptured authorization")
async def void_charge(order_id: str, service: ChargeLifecycleService = Depends(get_charge_service)):
    voided = await service.void(order_id)
    view = await service.get_charge(order_id)
    message = t("charge.voided") if voided else t("charge.void.rejected")
    return success_response(data={"voided": voided, "charge": view.model_dump(mode="json")}, message=message)


@router.post("/{order_id}/charge/refund", summary="Refund (or void) a charge")
async def refund_charge(
    order_id: str,
    payload: Optional[RefundRequest] = None,
    service: ChargeLifecycleService = Depends(get_charge_service),
):
    payload = payload or RefundRequest()
    outcome = await service.refund(order_id, payload.amount, payload.reason)
    view = await service.get_charge(order_id)
    return success_response(
        data={"outcome": outcome.model_dump(mode="json"), "charge": view.model_dump(mode="json")},
        message=t("charge.refunded"),
    )
