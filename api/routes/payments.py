"""
Payments API routes.

Storefront-facing availability check for the installment payment method.
Keep this thin: eligibility rules live in the application service.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query

from application.services.availability_service import AvailabilityService
from api.dependencies import get_availability_service
from core.i18n import t
from core.response import success_response


router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("/availability", summary="Is the payment method offered for this cart")
async def payment_availability(
    total: Decimal = Query(..., ge=0, description="Cart total in major currency units"),
    country: Optional[str] = Query(default=None, max_length=3),
    currency: Optional[str] = Query(default=None, min_length=3, max_length=3),
    service: AvailabilityService = Depends(get_availability_service),
):
    result = service.evaluate(total, country, currency)
    return success_response(data=result.model_dump(mode="json"), message=t("availability.ok"))
