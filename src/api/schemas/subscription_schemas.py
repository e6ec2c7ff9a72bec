# This file defines request bodies for the subscription endpoints.
# It exists so tier, period, resource and feature names are checked against one closed set before any lookup.
# Unknown values fail validation and surface as a 400 `INVALID_REQUEST_BODY`, not a 422.

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

TierName = Literal["momentum", "accelerate", "elite"]
BillingPeriodName = Literal["monthly", "quarterly", "yearly"]
ResourceName = Literal["applications", "cvs", "interviews", "compensation", "contracts", "ai_avatar_interviews"]
FeatureName = Literal[
    "application_tracker",
    "tailored_cvs",
    "interview_coach",
    "compensation_sessions",
    "contract_reviews",
    "ai_avatar_interviews",
]


class _RequestBody(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ResourceRequest(_RequestBody):
    resource: ResourceName


class FeatureRequest(_RequestBody):
    feature: FeatureName


class ChangePlanRequest(_RequestBody):
    target_tier: TierName
    target_billing_period: BillingPeriodName | None = None


class InitiateCheckoutRequest(_RequestBody):
    tier: TierName
    billing_period: BillingPeriodName
