"""
Standard API response helpers for consistent response formatting.

The storefront client expects a flat envelope:
- Success: { "ok": true, ...payload fields }
- Paginated: { "ok": true, "items": [...], "meta": {...} }
- Error: { "ok": false, "message": "...", "error": { "code": "...", "details": {...} } }
"""
from typing import Any


def ok_response(**fields: Any) -> dict[str, Any]:
    """
    Create a standardized success response.

    Returns:
        dict: { "ok": true, **fields }
    """
    return {"ok": True, **fields}


def error_response(message: str, code: str, details: Any = None) -> dict[str, Any]:
    """Create a standardized error body."""
    return {
        "ok": False,
        "message": message,
        "error": {"code": code, "details": details},
    }


def paginated_response(
    items: list[Any],
    limit: int,
    offset: int = 0,
    total: int | None = None,
) -> dict[str, Any]:
    """
    Create a standardized paginated response.

    Args:
        items: List of items for this page
        limit: Number of items per page
        offset: Offset of the first item
        total: Total number of items (if None, uses len(items))

    Returns:
        dict: { "ok": true, "items": <items>, "meta": { "limit", "offset", "total", "hasMore" } }
    """
    if total is None:
        total = len(items)

    meta = {
        "limit": limit,
        "offset": offset,
        "total": total,
        "hasMore": (offset + limit) < total,
    }

    return ok_response(items=items, meta=meta)
