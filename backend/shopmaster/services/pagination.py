# Overview: Shared offset pagination for list endpoints.

from __future__ import annotations

from typing import Callable

from flask import current_app


def clamp_page_params(page: int | None, per_page: int | None) -> tuple[int, int]:
    default = current_app.config.get("DEFAULT_PAGE_SIZE", 20)
    maximum = current_app.config.get("MAX_PAGE_SIZE", 100)
    per_page = min(per_page or default, maximum)
    per_page = max(per_page, 1)
    page = max(page or 1, 1)
    return page, per_page


def paginate(query, *, page: int | None, per_page: int | None, serialize: Callable) -> dict:
    """
    Apply offset/limit to an ordered query.

    Returns {"items", "count", "pagination"} with the same pagination keys
    on every list endpoint.
    """
    page, per_page = clamp_page_params(page, per_page)

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serialize(r) for r in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
