# This file defines the subscription endpoints under the versioned API path.
# It exists so the web client can check quotas, read plan status, and change plans over one router.
# Bodies are validated against closed enums and rejected with 400 `INVALID_REQUEST_BODY`.
# Quota checks and increments are separate calls; routes never combine them into one transaction.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.api.api_config import ApiConfig
from src.api.auth import CurrentUserDep
from src.api.dependencies import (
    get_access_control,
    get_config,
    get_recommendation_engine,
    get_subscription_service,
)
from src.api.request_body import JsonBodyDep, parse_body
from src.api.response_envelope import object_envelope
from src.api.schemas.common import ObjectResponseV1
from src.api.schemas.subscription_schemas import (
    ChangePlanRequest,
    FeatureRequest,
    InitiateCheckoutRequest,
    ResourceRequest,
)
from src.api.services.subscription_service import SubscriptionService
from src.subscription.access_control import AccessControl
from src.subscription.recommendation import RecommendationEngine

router = APIRouter(prefix="/subscription", tags=["subscription"])
AccessControlDep = Annotated[AccessControl, Depends(get_access_control)]
RecommendationDep = Annotated[RecommendationEngine, Depends(get_recommendation_engine)]
SubscriptionServiceDep = Annotated[SubscriptionService, Depends(get_subscription_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.post("/check-limit", response_model=ObjectResponseV1)
def check_limit(
    request: Request,
    user: CurrentUserDep,
    access_control: AccessControlDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    payload = parse_body(ResourceRequest, body)
    result = access_control.check_usage_limit(user.id, payload.resource)
    return object_envelope(config, request.state.request_id, result)


@router.post("/increment-usage", response_model=ObjectResponseV1)
def increment_usage(
    request: Request,
    user: CurrentUserDep,
    access_control: AccessControlDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    payload = parse_body(ResourceRequest, body)
    result = access_control.increment_usage(user.id, payload.resource)
    return object_envelope(config, request.state.request_id, result)


@router.post("/check-access", response_model=ObjectResponseV1)
def check_access(
    request: Request,
    user: CurrentUserDep,
    access_control: AccessControlDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    payload = parse_body(FeatureRequest, body)
    result = access_control.check_feature_access(user.id, payload.feature)
    return object_envelope(config, request.state.request_id, result)


@router.get("/status", response_model=ObjectResponseV1)
def subscription_status(
    request: Request,
    user: CurrentUserDep,
    access_control: AccessControlDep,
    config: ConfigDep,
) -> dict[str, object]:
    return object_envelope(config, request.state.request_id, access_control.get_subscription_status(user.id))


@router.get("/recommendation", response_model=ObjectResponseV1)
def recommendation(
    request: Request,
    user: CurrentUserDep,
    engine: RecommendationDep,
    config: ConfigDep,
) -> dict[str, object]:
    return object_envelope(config, request.state.request_id, engine.get_recommendation(user.id))


@router.get("/trends", response_model=ObjectResponseV1)
def trends(
    request: Request,
    user: CurrentUserDep,
    engine: RecommendationDep,
    config: ConfigDep,
) -> dict[str, object]:
    return object_envelope(config, request.state.request_id, engine.get_usage_trends(user.id))


@router.post("/cancel", response_model=ObjectResponseV1)
def cancel(
    request: Request,
    user: CurrentUserDep,
    service: SubscriptionServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.cancel(user.id)
    return object_envelope(config, request.state.request_id, result, message=result["message"])


@router.post("/change-plan", response_model=ObjectResponseV1)
def change_plan(
    request: Request,
    user: CurrentUserDep,
    service: SubscriptionServiceDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    payload = parse_body(ChangePlanRequest, body)
    result = service.change_plan(user.id, payload.target_tier, payload.target_billing_period)
    return object_envelope(config, request.state.request_id, result, message=result.get("message"))


@router.post("/initiate", response_model=ObjectResponseV1)
def initiate(
    request: Request,
    user: CurrentUserDep,
    service: SubscriptionServiceDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    payload = parse_body(InitiateCheckoutRequest, body)
    result = service.initiate_checkout(
        user_id=user.id,
        tier=payload.tier,
        billing_period=payload.billing_period,
        origin=request.headers.get("origin"),
        email=user.email,
        name=user.full_name,
    )
    return object_envelope(config, request.state.request_id, result)
