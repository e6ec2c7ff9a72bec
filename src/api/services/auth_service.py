# This file resolves bearer tokens into the signed-in user's profile.
# It exists so routers never touch session tables directly and tests can swap the lookup out.
# Only the SHA-256 digest of a token is stored, so lookups hash the presented value first.

from __future__ import annotations

import hashlib
from typing import Any

from src.api.api_config import ApiConfig
from src.api.db_access import DatabaseClient


def hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AuthService:
    """Session-token lookups against `user_sessions` joined to `profiles`."""

    def __init__(self, *, config: ApiConfig, db: DatabaseClient) -> None:
        self.config = config
        self.db = db
        self.sessions_table = self.config.validate_table_name("user_sessions")
        self.profiles_table = self.config.validate_table_name("profiles")

    def resolve_token(self, token: str) -> dict[str, Any] | None:
        query = f"""
        SELECT p.id, p.email, p.full_name, p.user_type, p.is_admin
        FROM {self.sessions_table} s
        JOIN {self.profiles_table} p ON p.id = s.user_id
        WHERE s.token_hash = :token_hash
          AND (s.expires_at IS NULL OR s.expires_at > NOW())
        """
        return self.db.fetch_one(query, {"token_hash": hash_session_token(token)})
