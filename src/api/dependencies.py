# This file provides dependency factories for FastAPI routes and middleware.
# It exists so services are created once and shared through dependency injection.
# The setup keeps routers thin and makes endpoint tests easy to override.
# Subscription services share one store, so every route sees the same persistence layer.

from __future__ import annotations

from functools import lru_cache

import requests

from src.api.api_config import ApiConfig, get_api_config
from src.api.db_access import DatabaseClient
from src.api.services.applications_service import ApplicationsService
from src.api.services.auth_service import AuthService
from src.api.services.compensation_service import CompensationService
from src.api.services.consent_service import ConsentService
from src.api.services.contract_service import ContractService
from src.api.services.cv_service import CVService
from src.api.services.gdpr_service import GdprService
from src.api.services.indicators_service import IndicatorsService
from src.api.services.interview_service import InterviewService
from src.api.services.subscription_service import SubscriptionService
from src.api.usage_limits import UsageGuard
from src.common.llm import LLMClient
from src.subscription.access_control import AccessControl
from src.subscription.grow_gateway import GrowGateway
from src.subscription.manager import SubscriptionManager
from src.subscription.morning_invoicing import MorningClient
from src.subscription.recommendation import RecommendationEngine
from src.subscription.store import SubscriptionStore


@lru_cache(maxsize=1)
def get_database_client() -> DatabaseClient:
    config = get_api_config()
    return DatabaseClient(database_url=config.database_url)


def get_config() -> ApiConfig:
    return get_api_config()


@lru_cache(maxsize=1)
def get_http_session() -> requests.Session:
    return requests.Session()


@lru_cache(maxsize=1)
def get_llm_client() -> LLMClient | None:
    config = get_api_config()
    if not config.openai_api_key:
        return None
    return LLMClient(
        api_key=config.openai_api_key,
        model=config.openai_model,
        fallback_models=config.openai_fallback_models,
    )


@lru_cache(maxsize=1)
def get_auth_service() -> AuthService:
    return AuthService(config=get_api_config(), db=get_database_client())


@lru_cache(maxsize=1)
def get_subscription_store() -> SubscriptionStore:
    return SubscriptionStore(db=get_database_client())


@lru_cache(maxsize=1)
def get_access_control() -> AccessControl:
    return AccessControl(store=get_subscription_store())


@lru_cache(maxsize=1)
def get_subscription_manager() -> SubscriptionManager:
    return SubscriptionManager(store=get_subscription_store())


@lru_cache(maxsize=1)
def get_recommendation_engine() -> RecommendationEngine:
    return RecommendationEngine(store=get_subscription_store())


@lru_cache(maxsize=1)
def get_usage_guard() -> UsageGuard:
    return UsageGuard(access_control=get_access_control())


@lru_cache(maxsize=1)
def get_grow_gateway() -> GrowGateway:
    config = get_api_config()
    return GrowGateway(timeout_seconds=config.integration_timeout_seconds, session=get_http_session())


@lru_cache(maxsize=1)
def get_morning_client() -> MorningClient:
    config = get_api_config()
    return MorningClient(timeout_seconds=config.integration_timeout_seconds, session=get_http_session())


@lru_cache(maxsize=1)
def get_subscription_service() -> SubscriptionService:
    return SubscriptionService(
        config=get_api_config(),
        store=get_subscription_store(),
        manager=get_subscription_manager(),
        gateway=get_grow_gateway(),
        invoicing=get_morning_client(),
    )


@lru_cache(maxsize=1)
def get_applications_service() -> ApplicationsService:
    return ApplicationsService(config=get_api_config(), db=get_database_client())


@lru_cache(maxsize=1)
def get_compensation_service() -> CompensationService:
    return CompensationService(applications=get_applications_service(), llm=get_llm_client())


@lru_cache(maxsize=1)
def get_contract_service() -> ContractService:
    return ContractService(
        config=get_api_config(),
        db=get_database_client(),
        applications=get_applications_service(),
        llm=get_llm_client(),
        session=get_http_session(),
    )


@lru_cache(maxsize=1)
def get_indicators_service() -> IndicatorsService:
    return IndicatorsService(config=get_api_config(), db=get_database_client(), llm=get_llm_client())


@lru_cache(maxsize=1)
def get_cv_service() -> CVService:
    return CVService(config=get_api_config(), db=get_database_client(), llm=get_llm_client())


@lru_cache(maxsize=1)
def get_interview_service() -> InterviewService:
    return InterviewService(applications=get_applications_service(), llm=get_llm_client())


@lru_cache(maxsize=1)
def get_gdpr_service() -> GdprService:
    return GdprService(config=get_api_config(), db=get_database_client())


@lru_cache(maxsize=1)
def get_consent_service() -> ConsentService:
    return ConsentService(config=get_api_config(), db=get_database_client())
