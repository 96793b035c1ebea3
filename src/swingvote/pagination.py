"""Offset pagination helpers shared by list endpoints."""

from __future__ import annotations

import math


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def pagination_metadata(total: int, page: int, limit: int) -> dict[str, int | bool]:
    """Pagination block returned alongside every paginated list.

    Keys are camelCase because the dict is serialized as-is.
    """
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPreviousPage": page > 1,
    }
