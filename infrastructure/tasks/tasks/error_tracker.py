"""Delivery of platform error-tracker reports to the provider"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from celery import shared_task

from core.logging_config import get_logger
from core.settings import payment_settings
from infrastructure.tasks.utils.base_task import BaseTask


logger = get_logger(__name__)

TASK_NAME = "infrastructure.tasks.tasks.error_tracker.post_error_report"


def _deliver(payload: Dict[str, Any], country: Optional[str]) -> int:
    public_key, private_key = payment_settings.affirm.key_pair(country)
    auth = httpx.BasicAuth(public_key or "", private_key or "")
    headers = {"Content-Type": "application/json", "Country-Code": country or "USA"}
    with httpx.Client(timeout=payment_settings.tracker.timeout) as client:
        response = client.post(payment_settings.tracker_url(), json=payload, headers=headers, auth=auth)
    return response.status_code


@shared_task(name=TASK_NAME, bind=True, base=BaseTask, max_retries=2, default_retry_delay=5)
def post_error_report(self, payload: Dict[str, Any], country: Optional[str] = None) -> Optional[int]:
    """POST one report; transport failures retry, everything else is dropped."""
    step = payload.get("transaction_step")
    try:
        status_code = _deliver(payload, country)
    except httpx.TransportError as exc:
        if self.request.retries >= self.max_retries:
            logger.warning("error_tracker_delivery_dropped", step=step, error=str(exc))
            return None
        raise self.retry(exc=exc)
    if status_code >= 400:
        logger.warning("error_tracker_rejected", step=step, status_code=status_code)
    else:
        logger.debug("error_tracker_delivered", step=step, status_code=status_code)
    return status_code
