# This file defines helpers for API path versioning and schema version metadata.
# Every response envelope carries these fields, and the contract check script compares OpenAPI snapshots with them.

from __future__ import annotations

from typing import Any


def api_version_label(api_version_path: str) -> str:
    """Convert `/api/v1` style paths into `v1` labels."""

    parts = [part for part in api_version_path.rstrip("/").split("/") if part]
    if not parts:
        raise ValueError(f"Invalid api_version_path: {api_version_path!r}")
    return parts[-1]


def build_version_fields(*, api_version_path: str, schema_version: str) -> dict[str, str]:
    return {
        "api_version": api_version_label(api_version_path),
        "schema_version": schema_version,
    }


def _schema_properties(schema: dict[str, Any]) -> set[str]:
    return set(schema.get("properties", {}))


def detect_breaking_schema_changes(
    *,
    previous_snapshot: dict[str, Any],
    current_snapshot: dict[str, Any],
) -> list[str]:
    """Removed paths, removed operations, removed schemas, and removed or newly optional fields."""

    findings: list[str] = []

    previous_paths: dict[str, Any] = previous_snapshot.get("paths", {})
    current_paths: dict[str, Any] = current_snapshot.get("paths", {})
    for path in sorted(set(previous_paths) - set(current_paths)):
        findings.append(f"Removed API path: {path}")
    for path in sorted(set(previous_paths) & set(current_paths)):
        for method in sorted(set(previous_paths[path]) - set(current_paths[path])):
            findings.append(f"Removed operation: {method.upper()} {path}")

    previous_schemas = previous_snapshot.get("components", {}).get("schemas", {})
    current_schemas = current_snapshot.get("components", {}).get("schemas", {})
    for schema_name, previous_schema in sorted(previous_schemas.items()):
        current_schema = current_schemas.get(schema_name)
        if current_schema is None:
            findings.append(f"Removed schema component: {schema_name}")
            continue
        for field in sorted(set(previous_schema.get("required", [])) - set(current_schema.get("required", []))):
            findings.append(f"Schema {schema_name} no longer requires field: {field}")
        for field in sorted(_schema_properties(previous_schema) - _schema_properties(current_schema)):
            findings.append(f"Schema {schema_name} removed property: {field}")

    return findings
