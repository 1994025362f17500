from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder

from .errors import DanglingReferenceError, NotFoundError, StoreError, ValidationError


# PUBLIC_INTERFACE
def pagination_envelope(
    items: Union[Sequence[Any], Iterable[Any]],
    total: int,
    limit: Optional[int],
    offset: int,
) -> Dict[str, Any]:
    """
    Build a standard pagination envelope for list endpoints.

    Args:
        items: The list/iterable of items for the current page.
        total: Total number of items that match the query (ignoring pagination).
        limit: The limit used for pagination; None when every match was returned.
        offset: The offset used for pagination.

    Returns:
        Dict with keys: items, total, limit, offset.
    """
    materialized: List[Any] = list(items) if not isinstance(items, list) else items
    return {
        "items": materialized,
        "total": int(total),
        "limit": None if limit is None else int(max(limit, 0)),
        "offset": int(max(offset, 0)),
    }


# PUBLIC_INTERFACE
def normalize_sort(sort: Optional[str], order: Optional[str]) -> Optional[str]:
    """
    Combine the `sort` and `order` query parameters into a store sort key.

    `sort` is a field name optionally prefixed with '-'; `order` ('asc' or
    'desc'), when given, overrides the direction. Returns None (insertion
    order) when no sort field is requested.
    """
    field = (sort or "").strip().lower()
    if order:
        ord_norm = order.strip().lower()
        if ord_norm not in {"asc", "desc"}:
            raise HTTPException(status_code=400, detail="order must be 'asc' or 'desc'")
        if not field:
            field = "created_at"
        field = field.lstrip("-")
        return f"-{field}" if ord_norm == "desc" else field
    return field or None


# PUBLIC_INTERFACE
def store_error_body(exc: StoreError) -> Dict[str, Any]:
    """
    Render a store error as the JSON body returned to API clients.

    - NotFoundError: {"error": "NotFoundError", "detail": "<Entity> not found"}
    - ValidationError: {"error": "ValidationError", "message": ..., "detail": [field errors]}
    - DanglingReferenceError: {"error": "ReferenceError", "message": ...,
      "detail": {"field": ..., "target": ..., "id": ...}}
    """
    if isinstance(exc, NotFoundError):
        return {"error": "NotFoundError", "detail": exc.message}
    if isinstance(exc, DanglingReferenceError):
        return {
            "error": "ReferenceError",
            "message": exc.message,
            "detail": {"field": exc.field, "target": exc.target.value, "id": exc.ref_id},
        }
    if isinstance(exc, ValidationError):
        return {"error": "ValidationError", "message": exc.message, "detail": jsonable_encoder(exc.errors)}
    return {"error": type(exc).__name__, "message": exc.message}
