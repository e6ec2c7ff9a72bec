# This file exposes the nightly subscription maintenance job over HTTP for the platform scheduler.
# It exists so expirations and snapshot reconciliation can run without shell access to the host.
# Callers must present `Authorization: Bearer <CRON_SECRET>`; anything else gets a 401 skip body.

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from src.api.api_config import ApiConfig
from src.api.dependencies import get_config, get_subscription_service
from src.api.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])
SubscriptionServiceDep = Annotated[SubscriptionService, Depends(get_subscription_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


def is_authorized_cron_request(request: Request, cron_secret: str | None) -> bool:
    if not cron_secret:
        return False
    header = request.headers.get("authorization") or ""
    return hmac.compare_digest(header, f"Bearer {cron_secret}")


@router.api_route("/process-subscriptions", methods=["GET", "POST"], response_model=None)
def process_subscriptions(
    request: Request,
    service: SubscriptionServiceDep,
    config: ConfigDep,
) -> dict[str, object] | JSONResponse:
    if not is_authorized_cron_request(request, config.cron_secret):
        logger.warning("Rejected unauthorized cron call from %s.", request.client.host if request.client else "unknown")
        return JSONResponse(status_code=401, content={"skipped": True, "reason": "unauthorized"})

    result = service.process_subscriptions()
    logger.info("Subscription maintenance finished: %s", result)
    return result
