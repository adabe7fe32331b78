"""Uniform page/limit handling for list endpoints and reports.

Every paginated response has the same shape::

    {"items": [...], "total": 42, "page": 2, "pages": 3}

``all_rows`` (or a limit of 0) switches pagination off and returns every row
on a single page.
"""

from __future__ import annotations

import math
from typing import Any, Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from .config import settings


def _window(page: int | None, limit: int | None, all_rows: bool) -> tuple[int, int] | None:
    if all_rows or limit == 0:
        return None
    safe_limit = limit if limit and limit > 0 else settings.DEFAULT_PAGE_LIMIT
    safe_page = page if page and page > 0 else 1
    return safe_page, safe_limit


def paginate_rows(
    rows: Sequence[Any],
    page: int | None = 1,
    limit: int | None = None,
    all_rows: bool = False,
) -> dict[str, Any]:
    """Slice an in-memory list of rows (used for flattened report rows)."""

    total = len(rows)
    window = _window(page, limit, all_rows)
    if window is None:
        return {"items": list(rows), "total": total, "page": 1, "pages": 1}
    safe_page, safe_limit = window
    start = (safe_page - 1) * safe_limit
    return {
        "items": list(rows[start : start + safe_limit]),
        "total": total,
        "page": safe_page,
        "pages": max(1, math.ceil(total / safe_limit)),
    }


def paginate_query(
    db: Session,
    stmt: Select,
    page: int | None = 1,
    limit: int | None = None,
    all_rows: bool = False,
) -> dict[str, Any]:
    """Run ``stmt`` with OFFSET/LIMIT and a matching COUNT(*)."""

    window = _window(page, limit, all_rows)
    if window is None:
        items = db.execute(stmt).scalars().all()
        return {"items": list(items), "total": len(items), "page": 1, "pages": 1}
    safe_page, safe_limit = window
    total = db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    items = db.execute(stmt.limit(safe_limit).offset((safe_page - 1) * safe_limit)).scalars().all()
    return {
        "items": list(items),
        "total": int(total),
        "page": safe_page,
        "pages": max(1, math.ceil(total / safe_limit)),
    }


__all__ = ["paginate_query", "paginate_rows"]
