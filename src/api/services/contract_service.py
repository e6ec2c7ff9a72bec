# This file implements contract analysis storage and lookups for the contract endpoints.
# It exists so the router stays transport-focused while extraction errors and SQL live here.
# Persisting the analysis row and linking it to an application are both best-effort writes.

from __future__ import annotations

import json
import logging
from typing import Any

import requests

from src.api.api_config import ApiConfig
from src.api.db_access import DatabaseClient
from src.api.error_handlers import APIError
from src.api.services.applications_service import ApplicationsService
from src.common.llm import LLMClient, LLMError
from src.contract.analyzer import analyze_contract
from src.contract.extraction import ExtractionError, detect_file_type

logger = logging.getLogger(__name__)

RECENT_ANALYSES_LIMIT = 20
ANALYSIS_INSERT_COLUMNS: tuple[str, ...] = (
    "id",
    "user_id",
    "job_application_id",
    "file_url",
    "file_name",
    "file_type",
    "extracted_text",
    "analysis",
    "red_flag_count",
    "yellow_flag_count",
    "green_clause_count",
    "user_reviewed",
    "created_at",
    "updated_at",
)
SUMMARY_COLUMNS = (
    "id, file_name, file_type, red_flag_count, yellow_flag_count, green_clause_count, created_at, analysis"
)


class ContractService:
    """Analyze uploaded contracts and read back stored analyses."""

    def __init__(
        self,
        *,
        config: ApiConfig,
        db: DatabaseClient,
        applications: ApplicationsService,
        llm: LLMClient | None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config
        self.db = db
        self.applications = applications
        self.llm = llm
        self.session = session
        self.table = self.config.validate_table_name("contract_analyses")

    def analyze(self, user_id: str, body: dict[str, Any]) -> dict[str, Any]:
        file_url = body.get("file_url")
        if not file_url or not isinstance(file_url, str):
            raise APIError(
                status_code=400,
                error_code="INVALID_REQUEST",
                message="Missing required field",
                details="file_url is required",
            )

        file_name = body.get("file_name") or None
        file_type = detect_file_type(file_url, file_name)
        if file_type is None:
            raise APIError(
                status_code=400,
                error_code="UNSUPPORTED_FILE_TYPE",
                message="Unsupported file type",
                details="Please upload a PDF, DOCX, PNG, or JPG file",
            )

        job_application_id = body.get("job_application_id") or None
        try:
            entity = analyze_contract(
                user_id,
                file_url,
                file_name or f"contract.{file_type}",
                file_type,
                body.get("user_role") or None,
                job_application_id,
                llm=self.llm,
                session=self.session,
            )
        except ExtractionError as exc:
            raise APIError(
                status_code=422,
                error_code="EXTRACTION_FAILED",
                message="Failed to extract contract text",
                details=str(exc),
            ) from exc
        except (LLMError, RuntimeError, ValueError) as exc:
            logger.exception("Contract analysis failed for user %s.", user_id)
            raise APIError(
                status_code=500,
                error_code="ANALYSIS_FAILED",
                message="Failed to analyze contract",
                details=str(exc),
            ) from exc

        self._store(entity)
        if job_application_id:
            try:
                self.applications.store_document(
                    user_id, job_application_id, "contract_analysis", entity["analysis"]
                )
            except Exception:
                logger.exception("Failed to link contract analysis to application %s.", job_application_id)
        return entity

    def _store(self, entity: dict[str, Any]) -> None:
        params = {column: entity[column] for column in ANALYSIS_INSERT_COLUMNS}
        params["analysis"] = json.dumps(entity["analysis"])
        columns = ", ".join(ANALYSIS_INSERT_COLUMNS)
        placeholders = ", ".join(f":{column}" for column in ANALYSIS_INSERT_COLUMNS)
        try:
            self.db.execute(f"INSERT INTO {self.table} ({columns}) VALUES ({placeholders})", params)
        except Exception:
            logger.exception("Error storing contract analysis %s.", entity["id"])

    def get_analysis(self, user_id: str, analysis_id: str) -> dict[str, Any]:
        row = self.db.fetch_one(
            f"SELECT * FROM {self.table} WHERE id = :id AND user_id = :user_id",
            {"id": analysis_id, "user_id": user_id},
        )
        if row is None:
            raise APIError(status_code=404, error_code="NOT_FOUND", message="Analysis not found")
        return row

    def list_for_application(self, user_id: str, job_application_id: str) -> list[dict[str, Any]]:
        return self.db.fetch_all(
            f"""
            SELECT *
            FROM {self.table}
            WHERE job_application_id = :job_application_id AND user_id = :user_id
            ORDER BY created_at DESC
            """,
            {"job_application_id": job_application_id, "user_id": user_id},
        )

    def list_recent(self, user_id: str) -> list[dict[str, Any]]:
        return self.db.fetch_all(
            f"""
            SELECT {SUMMARY_COLUMNS}
            FROM {self.table}
            WHERE user_id = :user_id
            ORDER BY created_at DESC
            LIMIT :limit
            """,
            {"user_id": user_id, "limit": RECENT_ANALYSES_LIMIT},
        )
