# This file implements CV tailoring sessions for the `/cv/tailor` endpoints.
# It exists so the session bookkeeping around the tailoring pipeline stays out of the router.
# The session row is created before the pipeline runs and updated after; both writes only log on error.

from __future__ import annotations

import json
import logging
from typing import Any

from src.api.api_config import ApiConfig
from src.api.db_access import DatabaseClient
from src.api.error_handlers import APIError
from src.common.llm import LLMClient
from src.cv.tailor import MIN_CV_LENGTH, MIN_JOB_DESCRIPTION_LENGTH, generate_best_of_both_worlds_cv

logger = logging.getLogger(__name__)

MAX_CV_LENGTH = 50_000
RECENT_SESSIONS_LIMIT = 20
SESSION_SUMMARY_COLUMNS = (
    "id, application_id, industry, status, base_overall_score, final_overall_score, "
    "improvement, sections_improved, created_at"
)


def validate_tailor_request(body: dict[str, Any]) -> tuple[str, str, str, str | None]:
    base_cv_text = body.get("base_cv_text")
    job_description = body.get("job_description")
    if not base_cv_text or not isinstance(base_cv_text, str):
        raise ValueError("Base CV text is required")
    if not job_description or not isinstance(job_description, str):
        raise ValueError("Job description is required")
    if len(base_cv_text) < MIN_CV_LENGTH:
        raise ValueError("Base CV text is too short (minimum 100 characters)")
    if len(job_description) < MIN_JOB_DESCRIPTION_LENGTH:
        raise ValueError("Job description is too short (minimum 50 characters)")
    if len(base_cv_text) > MAX_CV_LENGTH:
        raise ValueError("Base CV text is too long (maximum 50,000 characters)")
    industry = body.get("industry") or "generic"
    return base_cv_text, job_description, industry, body.get("application_id") or None


class CVService:
    """Run the tailoring pipeline and keep a session history per user."""

    def __init__(self, *, config: ApiConfig, db: DatabaseClient, llm: LLMClient | None) -> None:
        self.config = config
        self.db = db
        self.llm = llm
        self.table = self.config.validate_table_name("cv_tailoring_sessions")

    def tailor(self, user_id: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            base_cv_text, job_description, industry, application_id = validate_tailor_request(body)
        except ValueError as exc:
            raise APIError(status_code=400, error_code="INVALID_REQUEST", message=str(exc)) from exc

        save_to_database = body.get("save_to_database", True) is not False
        session_id = None
        if save_to_database:
            session_id = self._create_session(user_id, application_id, base_cv_text, job_description, industry)

        result = generate_best_of_both_worlds_cv(base_cv_text, job_description, industry, llm=self.llm)
        if session_id is not None:
            self._finish_session(session_id, result)

        logger.info(
            "CV tailoring for user %s finished in %sms: +%.1f points, %s/%s sections improved.",
            user_id,
            result["processing_time_ms"],
            result["overall_improvement"],
            result["sections_improved"],
            result["total_sections"],
        )
        if not result["success"]:
            raise APIError(
                status_code=500,
                error_code="TAILORING_FAILED",
                message=result.get("error") or "Failed to tailor CV",
                details={"session_id": session_id},
            )
        return {"result": result, "session_id": session_id}

    def _create_session(
        self,
        user_id: str,
        application_id: str | None,
        base_cv_text: str,
        job_description: str,
        industry: str,
    ) -> str | None:
        try:
            row = self.db.execute_returning(
                f"""
                INSERT INTO {self.table}
                    (user_id, application_id, base_cv_text, job_description, industry, status, created_at)
                VALUES
                    (:user_id, :application_id, :base_cv_text, :job_description, :industry, 'processing', NOW())
                RETURNING id
                """,
                {
                    "user_id": user_id,
                    "application_id": application_id,
                    "base_cv_text": base_cv_text,
                    "job_description": job_description,
                    "industry": industry,
                },
            )
        except Exception:
            logger.exception("Failed to create tailoring session for user %s.", user_id)
            return None
        return str(row["id"]) if row else None

    def _finish_session(self, session_id: str, result: dict[str, Any]) -> None:
        try:
            self.db.execute(
                f"""
                UPDATE {self.table}
                SET base_overall_score = :base_overall_score,
                    tailored_overall_score = :tailored_overall_score,
                    final_overall_score = :final_overall_score,
                    improvement = :improvement,
                    section_comparisons = :section_comparisons,
                    sections_improved = :sections_improved,
                    sections_kept_original = :sections_kept_original,
                    final_cv_text = :final_cv_text,
                    status = :status,
                    error_message = :error_message,
                    processing_time_ms = :processing_time_ms,
                    tokens_used = :tokens_used
                WHERE id = :id
                """,
                {
                    "id": session_id,
                    "base_overall_score": result["base_overall_score"],
                    "tailored_overall_score": result["tailored_overall_score"],
                    "final_overall_score": result["final_overall_score"],
                    "improvement": result["overall_improvement"],
                    "section_comparisons": json.dumps(result["section_comparisons"], default=str),
                    "sections_improved": result["sections_improved"],
                    "sections_kept_original": result["sections_kept_original"],
                    "final_cv_text": result["final_cv_text"],
                    "status": "completed" if result["success"] else "failed",
                    "error_message": result.get("error"),
                    "processing_time_ms": result["processing_time_ms"],
                    "tokens_used": result.get("tokens_used") or None,
                },
            )
        except Exception:
            logger.exception("Failed to update tailoring session %s.", session_id)

    def list_sessions(self, user_id: str) -> list[dict[str, Any]]:
        return self.db.fetch_all(
            f"""
            SELECT {SESSION_SUMMARY_COLUMNS}
            FROM {self.table}
            WHERE user_id = :user_id
            ORDER BY created_at DESC
            LIMIT :limit
            """,
            {"user_id": user_id, "limit": RECENT_SESSIONS_LIMIT},
        )

    def get_session(self, user_id: str, session_id: str) -> dict[str, Any]:
        row = self.db.fetch_one(
            f"SELECT * FROM {self.table} WHERE id = :id AND user_id = :user_id",
            {"id": session_id, "user_id": user_id},
        )
        if row is None:
            raise APIError(status_code=404, error_code="NOT_FOUND", message="Session not found")
        return row
