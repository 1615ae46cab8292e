"""Pagination helpers for list endpoints."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(slots=True, frozen=True)
class PageParams:
    """Clamped page request."""

    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def get_pagination_params(
    args: Mapping[str, Any],
    default_page: int = 1,
    default_limit: int = 10,
    max_limit: int = 100,
    min_limit: int = 1,
) -> PageParams:
    """Read ``page`` and ``limit`` from query args.

    Invalid or out-of-range values fall back to the defaults; a limit
    above ``max_limit`` is clamped to it.
    """
    page = _to_int(args.get("page"))
    if page is None or page < 1:
        page = default_page

    limit = _to_int(args.get("limit"))
    if limit is None or limit < min_limit:
        limit = default_limit
    limit = min(limit, max_limit)

    return PageParams(page=page, limit=limit)


def format_pagination_meta(count: int, page: int, limit: int) -> dict[str, int]:
    """Pagination metadata for a list response.

    ``from`` and ``to`` are 1-based record numbers, both 0 when empty.
    """
    page_count = math.ceil(count / limit) or 1
    offset = (page - 1) * limit

    return {
        "count": count,
        "page": page,
        "pageCount": page_count,
        "limit": limit,
        "from": offset + 1 if count > 0 else 0,
        "to": min(offset + limit, count) if count > 0 else 0,
    }
