# This file handles pagination and sort parsing for the job applications list.
# `limit` is accepted as an alias of `page_size` and wins when both are sent.
# Sort input is `field:asc|desc`; the field must be allowlisted before it reaches SQL.

from __future__ import annotations

from dataclasses import dataclass

SORT_ORDERS = ("asc", "desc")


@dataclass(frozen=True)
class SortSpec:
    field: str
    order: str

    @property
    def as_text(self) -> str:
        return f"{self.field}:{self.order}"


@dataclass(frozen=True)
class PaginationSpec:
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return self.page_size * (self.page - 1)


def normalize_pagination(
    *,
    page: int,
    page_size: int | None,
    limit: int | None,
    default_page_size: int,
    max_page_size: int,
) -> PaginationSpec:
    """Resolve the effective page size and reject out-of-range values with `ValueError`."""

    size = next((value for value in (limit, page_size) if value is not None), default_page_size)
    if page < 1:
        raise ValueError("page must be >= 1")
    if not 1 <= size <= max_page_size:
        raise ValueError(f"page_size must be between 1 and {max_page_size}")
    return PaginationSpec(page=page, page_size=size)


def parse_sort(*, requested_sort: str | None, default_sort: str, allowed_fields: set[str]) -> SortSpec:
    raw = (requested_sort or default_sort).strip().lower()
    field, _, order = raw.partition(":")
    order = order or "asc"
    if field not in allowed_fields:
        raise ValueError(f"Cannot sort by '{field}'. Supported fields: {', '.join(sorted(allowed_fields))}")
    if order not in SORT_ORDERS:
        raise ValueError(f"sort order must be one of: {', '.join(SORT_ORDERS)}")
    return SortSpec(field=field, order=order)


def compute_total_pages(*, total_count: int, page_size: int) -> int:
    return -(-max(total_count, 0) // page_size)
