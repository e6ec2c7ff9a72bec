# This file implements job-application storage for the application tracker endpoints.
# It exists so routers stay transport-focused while SQL and field normalization live in one layer.
# Every query is scoped by owner, so one user can never read or change another user's rows.
# AI features also park their JSON output on the application through `store_document`.

from __future__ import annotations

import json
from typing import Any

from src.api.api_config import ApiConfig
from src.api.db_access import DatabaseClient
from src.api.pagination import SortSpec

REQUIRED_FIELDS: tuple[str, ...] = ("company_name", "position_title", "job_description")
OPTIONAL_FIELDS: tuple[str, ...] = ("job_url", "location", "notes", "user_excitement_level")
UPDATABLE_COLUMNS: frozenset[str] = frozenset(
    {
        "company_name",
        "position_title",
        "job_description",
        "job_url",
        "location",
        "notes",
        "application_status",
        "user_excitement_level",
        "priority_level",
    }
)
UPDATE_ALIASES: dict[str, str] = {
    "status": "application_status",
    "excitement_level": "user_excitement_level",
    "priority": "priority_level",
}
DOCUMENT_COLUMNS: frozenset[str] = frozenset(
    {"compensation_strategy", "contract_analysis", "interview_prep_notes"}
)
APPLICATION_SORT_FIELD_MAP: dict[str, str] = {
    "created_at": "created_at",
    "updated_at": "updated_at",
    "company_name": "company_name",
    "application_status": "application_status",
    "priority_level": "priority_level",
}


def _aliased(body: dict[str, Any], column: str) -> Any:
    # Canonical column name wins over its short alias.
    if body.get(column) is not None:
        return body[column]
    alias = next(key for key, target in UPDATE_ALIASES.items() if target == column)
    return body.get(alias)


def validate_new_application(body: dict[str, Any]) -> dict[str, Any]:
    """Return insert values, raising `ValueError("<field> is required")` on the first bad field."""

    values: dict[str, Any] = {}
    for field in REQUIRED_FIELDS:
        raw = body.get(field)
        if not isinstance(raw, str) or not raw.strip():
            raise ValueError(f"{field} is required")
        values[field] = raw.strip()

    for field in OPTIONAL_FIELDS:
        values[field] = body.get(field) or None
    values["user_excitement_level"] = _aliased(body, "user_excitement_level")
    values["application_status"] = _aliased(body, "application_status") or "preparing"
    values["priority_level"] = _aliased(body, "priority_level") or "medium"
    return values


def normalize_application_updates(body: dict[str, Any]) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    for key, value in body.items():
        column = UPDATE_ALIASES.get(key, key)
        if column in UPDATABLE_COLUMNS:
            updates[column] = value.strip() if isinstance(value, str) else value
    if not updates:
        raise ValueError("No valid fields to update")
    return updates


def _decode_document(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


class ApplicationsService:
    """Owner-scoped CRUD on `job_applications`."""

    def __init__(self, *, config: ApiConfig, db: DatabaseClient) -> None:
        self.config = config
        self.db = db
        self.table = self.config.validate_table_name("job_applications")

    def create_application(self, user_id: str, values: dict[str, Any]) -> dict[str, Any] | None:
        columns = ["user_id", "created_by", *sorted(values)]
        query = f"""
        INSERT INTO {self.table} ({", ".join(columns)}, created_at, updated_at)
        VALUES ({", ".join(f":{column}" for column in columns)}, NOW(), NOW())
        RETURNING *
        """
        return self.db.execute_returning(query, {**values, "user_id": user_id, "created_by": user_id})

    def list_applications(
        self,
        *,
        user_id: str,
        status: str | None,
        priority: str | None,
        page: int,
        page_size: int,
        sort: SortSpec,
    ) -> dict[str, Any]:
        where_clauses = ["user_id = :user_id"]
        params: dict[str, Any] = {"user_id": user_id}
        if status is not None:
            where_clauses.append("application_status = :status")
            params["status"] = status
        if priority is not None:
            where_clauses.append("priority_level = :priority")
            params["priority"] = priority
        where_sql = " AND ".join(where_clauses)

        total_count = int(
            self.db.fetch_scalar(f"SELECT COUNT(*) FROM {self.table} WHERE {where_sql}", params)
        )
        order_sql = f"{APPLICATION_SORT_FIELD_MAP[sort.field]} {sort.order.upper()}, id ASC"
        rows = self.db.fetch_all(
            f"""
            SELECT *
            FROM {self.table}
            WHERE {where_sql}
            ORDER BY {order_sql}
            LIMIT :limit OFFSET :offset
            """,
            {**params, "limit": page_size, "offset": (page - 1) * page_size},
        )
        return {"rows": rows, "total_count": total_count}

    def get_application(self, user_id: str, application_id: str) -> dict[str, Any] | None:
        return self.db.fetch_one(
            f"SELECT * FROM {self.table} WHERE id = :id AND user_id = :user_id",
            {"id": application_id, "user_id": user_id},
        )

    def update_application(
        self, user_id: str, application_id: str, updates: dict[str, Any]
    ) -> dict[str, Any] | None:
        columns = sorted(set(updates) & UPDATABLE_COLUMNS)
        set_sql = ", ".join(f"{column} = :{column}" for column in columns)
        return self.db.execute_returning(
            f"""
            UPDATE {self.table}
            SET {set_sql}, updated_at = NOW()
            WHERE id = :id AND user_id = :user_id
            RETURNING *
            """,
            {**{column: updates[column] for column in columns}, "id": application_id, "user_id": user_id},
        )

    def delete_application(self, user_id: str, application_id: str) -> bool:
        deleted = self.db.execute(
            f"DELETE FROM {self.table} WHERE id = :id AND user_id = :user_id",
            {"id": application_id, "user_id": user_id},
        )
        return deleted > 0

    def store_document(self, user_id: str, application_id: str, column: str, document: Any) -> None:
        if column not in DOCUMENT_COLUMNS:
            raise ValueError(f"Unknown application document column: {column!r}")
        self.db.execute(
            f"""
            UPDATE {self.table}
            SET {column} = :document, updated_at = NOW()
            WHERE id = :id AND user_id = :user_id
            """,
            {"document": json.dumps(document, default=str), "id": application_id, "user_id": user_id},
        )

    def read_document(self, user_id: str, application_id: str, column: str) -> tuple[bool, Any]:
        """Return `(found, document)`; `document` is None when nothing usable is stored."""

        if column not in DOCUMENT_COLUMNS:
            raise ValueError(f"Unknown application document column: {column!r}")
        row = self.db.fetch_one(
            f"SELECT {column} FROM {self.table} WHERE id = :id AND user_id = :user_id",
            {"id": application_id, "user_id": user_id},
        )
        if row is None:
            return False, None
        return True, _decode_document(row.get(column))
