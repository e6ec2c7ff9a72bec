# This file defines the contract review endpoints.
# It exists so uploaded employment contracts can be analyzed and the stored analyses listed again.
# Analysis is metered on the `contracts` resource; a failed extraction is a 422 and is not counted.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.api.api_config import ApiConfig
from src.api.auth import CurrentUserDep
from src.api.dependencies import get_config, get_contract_service, get_usage_guard
from src.api.request_body import JsonBodyDep, json_object
from src.api.response_envelope import object_envelope
from src.api.schemas.common import ObjectResponseV1
from src.api.services.contract_service import ContractService
from src.api.usage_limits import UsageGuard

router = APIRouter(prefix="/contract", tags=["contract"])
ContractServiceDep = Annotated[ContractService, Depends(get_contract_service)]
UsageGuardDep = Annotated[UsageGuard, Depends(get_usage_guard)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.post("/analyze", response_model=ObjectResponseV1)
def analyze_contract(
    request: Request,
    user: CurrentUserDep,
    service: ContractServiceDep,
    usage: UsageGuardDep,
    config: ConfigDep,
    body: JsonBodyDep,
) -> dict[str, object]:
    usage.enforce(user.id, "contracts")
    entity = service.analyze(user.id, json_object(body))
    usage.record(user.id, "contracts")
    return object_envelope(config, request.state.request_id, entity)


@router.get("/analyze", response_model=ObjectResponseV1)
def get_analyses(
    request: Request,
    user: CurrentUserDep,
    service: ContractServiceDep,
    config: ConfigDep,
    analysis_id: str | None = Query(default=None),
    job_application_id: str | None = Query(default=None),
) -> dict[str, object]:
    if analysis_id:
        data: object = service.get_analysis(user.id, analysis_id)
    elif job_application_id:
        data = service.list_for_application(user.id, job_application_id)
    else:
        data = service.list_recent(user.id)
    return object_envelope(config, request.state.request_id, data)
