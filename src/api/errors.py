from __future__ import annotations

from typing import Any, Dict, List, Optional

from .models import EntityKind


class StoreError(Exception):
    """Base class for errors raised by entity stores. Never fatal to the store."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# PUBLIC_INTERFACE
class ValidationError(StoreError):
    """
    A required field is missing or empty, an enumerated field holds a value
    outside its set, or the operation is not allowed for the entity kind.

    `errors` holds per-field details in the same shape pydantic reports them
    ({"loc": [...], "msg": "...", "type": "..."}).
    """

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


# PUBLIC_INTERFACE
class DanglingReferenceError(StoreError):
    """A foreign key does not resolve to an existing row of its target collection."""

    def __init__(self, field: str, target: EntityKind, ref_id: str) -> None:
        super().__init__(f"{field} references unknown {target.label.lower()} '{ref_id}'")
        self.field = field
        self.target = target
        self.ref_id = ref_id


# PUBLIC_INTERFACE
class NotFoundError(StoreError):
    """The operation targets an id that does not exist."""

    def __init__(self, kind: EntityKind, entity_id: str) -> None:
        super().__init__(f"{kind.label} not found")
        self.kind = kind
        self.entity_id = entity_id
