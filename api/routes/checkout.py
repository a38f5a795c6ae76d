"""
Checkout API routes.

``begin`` and ``bootstrap`` are called by the storefront; ``complete`` is the
provider's confirmation URL and always answers with a redirect.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from api.dependencies import get_checkout_service
from application.services.checkout_service import CheckoutService
from core.i18n import t
from core.response import success_response


router = APIRouter(prefix="/checkout", tags=["Checkout"])

NOTICE_PARAM = "affirm_notice"


def _with_notice(url: str, notice: Optional[str]) -> str:
    if not notice:
        return url
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{urlencode({NOTICE_PARAM: notice})}"


@router.post("/complete", summary="Provider confirmation callback", include_in_schema=True)
async def complete_checkout(
    action: Optional[str] = Query(default=None),
    order_id: Optional[str] = Query(default=None),
    order_key: Optional[str] = Query(default=None),
    nonce: Optional[str] = Query(default=None),
    checkout_token: Optional[str] = Form(default=None),
    service: CheckoutService = Depends(get_checkout_service),
):
    result = await service.complete_checkout(
        action=action,
        checkout_token=checkout_token,
        order_id=order_id,
        order_key=order_key,
        nonce=nonce,
    )
    return RedirectResponse(
        url=_with_notice(result.redirect_url, result.notice),
        status_code=status.HTTP_303_SEE_OTHER,
    )


@router.post("/{order_id}/begin", summary="Start the hosted checkout for an order")
async def begin_checkout(order_id: str, service: CheckoutService = Depends(get_checkout_service)):
    start = await service.begin_checkout(order_id)
    return success_response(data=start.model_dump(mode="json"), message=t("checkout.begin.ok"))


@router.get("/{order_id}/bootstrap", summary="Checkout object for the hosted page")
async def checkout_bootstrap(
    order_id: str,
    nonce: Optional[str] = Query(default=None),
    service: CheckoutService = Depends(get_checkout_service),
):
    boot = await service.bootstrap(order_id, nonce)
    if boot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=t("checkout.bootstrap.not_found"))
    return success_response(data=boot.model_dump(mode="json"))
