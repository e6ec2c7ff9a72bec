# This file derives the version fields stamped on every enveloped and health response.
# The `api_version` label comes from the mounted path so it cannot drift from the routes.

from __future__ import annotations


def api_version_label(api_version_path: str) -> str:
    """`/api/v1` -> `v1`."""

    label = api_version_path.rstrip("/").rpartition("/")[2]
    if not label:
        raise ValueError(f"Invalid api_version_path: {api_version_path!r}")
    return label


def build_version_fields(*, api_version_path: str, schema_version: str) -> dict[str, str]:
    return {"api_version": api_version_label(api_version_path), "schema_version": schema_version}
