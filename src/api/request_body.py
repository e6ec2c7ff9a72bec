# This file reads JSON request bodies without letting malformed input reach the routes as a 422.
# It exists so feature routes can return the same 400 bodies whether the JSON is broken or just incomplete.

from __future__ import annotations

import logging
from typing import Annotated, Any, TypeVar

from fastapi import Depends, Request
from pydantic import BaseModel, ValidationError

from src.api.error_handlers import APIError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


async def read_json_body(request: Request) -> Any:
    """Return the decoded body, or None when it is empty or not JSON."""

    raw = await request.body()
    if not raw:
        return None
    try:
        return await request.json()
    except ValueError:
        logger.info("Ignoring malformed JSON body on %s.", request.url.path)
        return None


def json_object(body: Any) -> dict[str, Any]:
    return body if isinstance(body, dict) else {}


def parse_body(model: type[ModelT], body: Any) -> ModelT:
    try:
        return model.model_validate(json_object(body))
    except ValidationError as exc:
        raise APIError(
            status_code=400,
            error_code="INVALID_REQUEST_BODY",
            message="Invalid request body",
            details=exc.errors(include_url=False, include_context=False),
        ) from exc


JsonBodyDep = Annotated[Any, Depends(read_json_body)]
