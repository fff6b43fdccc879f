"""
Pagination helpers shared by list endpoints.
"""

import math
from typing import Any, Dict, Tuple

from sqlalchemy.orm import Query

MAX_PAGE_SIZE = 50


def paginate_query(query: Query, skip: int = 0, limit: int = 100) -> Query:
    """Apply offset pagination to a query with validation."""
    limit = min(max(1, limit), 100)
    skip = max(0, skip)
    return query.offset(skip).limit(limit)


def page_window(
    page: int, page_size: int, *, max_page_size: int = MAX_PAGE_SIZE
) -> Tuple[int, int]:
    """Clamp 1-based page/page_size and return (page, page_size)."""
    page = max(1, page)
    page_size = min(max(1, page_size), max_page_size)
    return page, page_size


def apply_page(query: Query, page: int, page_size: int) -> Query:
    """Slice a query to the given 1-based page."""
    return paginate_query(query, skip=(page - 1) * page_size, limit=page_size)


def count_rows(query: Query) -> int:
    """Return count with ORDER BY removed to avoid inflated totals."""
    return query.order_by(None).count()


def build_page_meta(total_count: int, page: int, page_size: int) -> Dict[str, Any]:
    """Standard page metadata returned next to list payloads."""
    total_pages = math.ceil(total_count / page_size) if page_size else 0
    return {
        "total_count": total_count,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1,
    }


__all__ = [
    "paginate_query",
    "page_window",
    "apply_page",
    "count_rows",
    "build_page_meta",
    "MAX_PAGE_SIZE",
]
