# This file handles pagination and sort parsing for catalog list endpoints.
# Catalog rows are assembled in memory after instance selection, so sorting and slicing happen here too.

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SortSpec:
    field: str
    order: str

    @property
    def as_text(self) -> str:
        return f"{self.field}:{self.order}"

    @property
    def descending(self) -> bool:
        return self.order == "desc"


@dataclass(frozen=True)
class PaginationSpec:
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def normalize_pagination(
    *,
    page: int,
    page_size: int | None,
    default_page_size: int,
    max_page_size: int,
) -> PaginationSpec:
    """Validate and normalize page/page_size values."""

    resolved_page_size = default_page_size if page_size is None else page_size
    if page < 1:
        raise ValueError("page must be >= 1")
    if resolved_page_size < 1:
        raise ValueError("page_size must be >= 1")
    if resolved_page_size > max_page_size:
        raise ValueError(f"page_size must be <= {max_page_size}")
    return PaginationSpec(page=page, page_size=resolved_page_size)


def parse_sort(
    *,
    requested_sort: str | None,
    default_sort: str,
    allowed_fields: set[str],
) -> SortSpec:
    """Parse sort input in the form `field:asc|desc`."""

    raw_sort = (requested_sort or default_sort).strip().lower()
    if not raw_sort:
        raise ValueError("sort cannot be empty")

    if ":" in raw_sort:
        field, order = raw_sort.split(":", 1)
    else:
        field, order = raw_sort, "asc"

    if field not in allowed_fields:
        supported = ", ".join(sorted(allowed_fields))
        raise ValueError(f"Unsupported sort field '{field}'. Supported fields: {supported}")
    if order not in {"asc", "desc"}:
        raise ValueError("sort order must be 'asc' or 'desc'")
    return SortSpec(field=field, order=order)


def sort_rows(rows: Sequence[dict[str, Any]], sort: SortSpec, *, tie_breaker: str) -> list[dict[str, Any]]:
    """Stable sort with nulls last in both directions, then ascending `tie_breaker`."""

    ordered = sorted(rows, key=lambda row: row[tie_breaker])
    present = [row for row in ordered if row.get(sort.field) is not None]
    missing = [row for row in ordered if row.get(sort.field) is None]
    present.sort(key=lambda row: row[sort.field], reverse=sort.descending)
    return present + missing


def paginate(rows: Sequence[dict[str, Any]], spec: PaginationSpec) -> list[dict[str, Any]]:
    return list(rows[spec.offset : spec.offset + spec.page_size])


def compute_total_pages(*, total_count: int, page_size: int) -> int:
    """Compute deterministic total page count."""

    if total_count <= 0:
        return 0
    return ((total_count - 1) // page_size) + 1
