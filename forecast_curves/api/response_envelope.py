# This file builds response envelopes for API endpoints in a consistent format.
# Envelopes carry version metadata, the request id, and optional warnings next to the payload.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import Response

from forecast_curves.api.schema_versions import build_version_fields


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def build_list_envelope(
    *,
    api_version_path: str,
    schema_version: str,
    request_id: str,
    data: list[Any],
    pagination: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        **build_version_fields(api_version_path=api_version_path, schema_version=schema_version),
        "request_id": request_id,
        "generated_at": utc_now(),
        "data": data,
        "pagination": pagination,
        "warnings": warnings or None,
    }


def build_object_envelope(
    *,
    api_version_path: str,
    schema_version: str,
    request_id: str,
    data: Any,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        **build_version_fields(api_version_path=api_version_path, schema_version=schema_version),
        "request_id": request_id,
        "generated_at": utc_now(),
        "data": data,
        "warnings": warnings or None,
    }


def csv_attachment(content: str, *, filename: str) -> Response:
    """Plain CSV download with an attachment filename."""

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
