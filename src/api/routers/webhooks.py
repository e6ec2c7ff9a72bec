# This file receives payment notifications from the Grow gateway.
# It exists so subscription activation and renewal are driven by the payment partner, not the browser.
# Grow may post JSON or form-encoded bodies; both are flattened into one dict before verification.

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from src.api.dependencies import get_subscription_service
from src.api.error_handlers import APIError
from src.api.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
SubscriptionServiceDep = Annotated[SubscriptionService, Depends(get_subscription_service)]


async def read_webhook_body(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            payload = await request.json()
        except ValueError as exc:
            raise APIError(status_code=400, error_code="INVALID_PAYLOAD", message="Invalid webhook payload") from exc
        if not isinstance(payload, dict):
            raise APIError(status_code=400, error_code="INVALID_PAYLOAD", message="Invalid webhook payload")
        return payload

    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


@router.post("/grow")
async def grow_webhook(request: Request, service: SubscriptionServiceDep) -> dict[str, object]:
    body = await read_webhook_body(request)
    logger.info("Received Grow webhook with %s fields.", len(body))
    return await run_in_threadpool(service.handle_grow_webhook, body)
