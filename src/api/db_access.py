# This file wraps database access so API services and the subscription store run parameterized SQL.
# It exists to keep engine and connection handling out of routers, services, and domain code.
# Writes that need the stored row back (inserts with defaults) go through `execute_returning`.
# Table-existence checks back the readiness probe and the GDPR export skip logic.

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

Params = Mapping[str, Any] | None


def safe_identifier(identifier: str) -> str:
    if not _IDENTIFIER_RE.match(identifier):
        raise ValueError(f"Unsafe SQL identifier: {identifier!r}")
    return identifier


class DatabaseClient:
    """Thin SQLAlchemy Core wrapper; every statement is a `text()` query with bound params."""

    def __init__(self, *, database_url: str) -> None:
        self._engine: Engine = create_engine(database_url, pool_pre_ping=True, future=True)
        self._known_tables: dict[str, bool] = {}

    def can_connect(self) -> bool:
        try:
            self.fetch_scalar("SELECT 1")
        except SQLAlchemyError:
            return False
        return True

    def table_exists(self, table_name: str) -> bool:
        return bool(
            self.fetch_scalar("SELECT to_regclass(:name) IS NOT NULL", {"name": safe_identifier(table_name)})
        )

    def fetch_all(self, query: str, params: Params = None) -> list[dict[str, Any]]:
        with self._engine.connect() as connection:
            return [dict(row) for row in connection.execute(text(query), dict(params or {})).mappings()]

    def fetch_one(self, query: str, params: Params = None) -> dict[str, Any] | None:
        with self._engine.connect() as connection:
            row = connection.execute(text(query), dict(params or {})).mappings().first()
        return None if row is None else dict(row)

    def fetch_scalar(self, query: str, params: Params = None) -> Any:
        with self._engine.connect() as connection:
            return connection.execute(text(query), dict(params or {})).scalar_one()

    def execute(self, query: str, params: Params = None) -> int:
        """Run a write and return the affected row count."""

        with self._engine.begin() as connection:
            return int(connection.execute(text(query), dict(params or {})).rowcount or 0)

    def execute_returning(self, query: str, params: Params = None) -> dict[str, Any] | None:
        """Run a write with a RETURNING clause and hand back the first row."""

        with self._engine.begin() as connection:
            row = connection.execute(text(query), dict(params or {})).mappings().first()
        return None if row is None else dict(row)

    def log_request(
        self,
        *,
        table_name: str,
        request_id: str,
        path: str,
        method: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        table = safe_identifier(table_name)
        # Only a confirmed table is cached; a missing one is checked again next time.
        if not self._known_tables.get(table):
            self._known_tables[table] = self.table_exists(table)
            if not self._known_tables[table]:
                return
        self.execute(
            f"INSERT INTO {table} (request_id, path, method, status_code, duration_ms, created_at) "
            "VALUES (:request_id, :path, :method, :status_code, :duration_ms, NOW())",
            {
                "request_id": request_id,
                "path": path,
                "method": method,
                "status_code": status_code,
                "duration_ms": duration_ms,
            },
        )
