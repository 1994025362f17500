from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Type, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import DanglingReferenceError, NotFoundError, ValidationError
from .models import (
    DEPENDENTS,
    ENTITY_FIELDS,
    FOREIGN_KEYS,
    MUTABLE_KINDS,
    SEARCH_FIELDS,
    EntityKind,
    Priority,
    WorkStatus,
)
from .schemas import CREATE_SCHEMAS, UPDATE_SCHEMAS, ProjectUpdate, _PartialUpdate
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Payload = Union[BaseModel, Mapping[str, Any]]

SORTABLE_FIELDS = ("created_at", "updated_at", "name", "title", "duration")


@dataclass(frozen=True)
class ListQuery:
    """
    Query parameters for listing records of one kind.

    Equality filters only apply to kinds that carry the field; asking for a
    filter the kind does not have is a ValidationError. `sort` is None for
    insertion order, otherwise a field name with an optional '-' prefix for
    descending order.
    """
    limit: Optional[int] = None
    offset: int = 0
    company_id: Optional[str] = None
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    user_id: Optional[str] = None
    status: Optional[WorkStatus] = None
    priority: Optional[Priority] = None
    is_archived: Optional[bool] = None
    is_public: Optional[bool] = None
    category: Optional[str] = None
    visible_to_company: Optional[str] = None  # articles: public ones plus this company's
    search: Optional[str] = None
    sort: Optional[str] = None

    # PUBLIC_INTERFACE
    def equality_filters(self, kind: EntityKind) -> Dict[str, Any]:
        """Return the field == value filters set on this query, checked against `kind`."""
        special = {"limit", "offset", "visible_to_company", "search", "sort"}
        result: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in special or value is None:
                continue
            if f.name not in ENTITY_FIELDS[kind]:
                raise ValidationError(f"Cannot filter {kind.label.lower()} records by {f.name}")
            result[f.name] = value
        if self.visible_to_company is not None and kind is not EntityKind.ARTICLE:
            raise ValidationError("visible_to_company only applies to articles")
        return result


def resolve_sort(kind: EntityKind, sort: Optional[str]) -> Optional[Tuple[str, bool]]:
    """
    Parse a sort key into (field, descending). None means insertion order.
    """
    if sort is None or not sort.strip():
        return None
    key = sort.strip().lower()
    descending = key.startswith("-")
    field = key.lstrip("-")
    if field not in SORTABLE_FIELDS or field not in ENTITY_FIELDS[kind]:
        raise ValidationError(f"Cannot sort {kind.label.lower()} records by '{field}'")
    return field, descending


def _sort_value(value: Any) -> Any:
    if isinstance(value, str):
        return value.lower()
    return value


# PUBLIC_INTERFACE
class EntityStore(ABC):
    """
    Abstract contract for the entity store holding companies, projects,
    tasks, time entries and articles.

    Writes validate their payload, check every foreign key against the target
    collection and assign ids and timestamps. Deletes cascade to dependents
    (company -> projects and articles, project -> tasks, task -> time entries).
    Time entries are append-only: update is rejected for them.
    """

    backend_name: str = "abstract"

    @abstractmethod
    def create(self, kind: EntityKind, data: Payload) -> Record:
        """Validate and insert a new record. Return a copy of it."""

    @abstractmethod
    def get(self, kind: EntityKind, entity_id: str) -> Record:
        """Return a copy of one record. Raises NotFoundError."""

    @abstractmethod
    def update(self, kind: EntityKind, entity_id: str, data: Payload) -> Record:
        """Merge the provided fields into a record and bump updated_at. Raises NotFoundError."""

    @abstractmethod
    def delete(self, kind: EntityKind, entity_id: str) -> int:
        """Delete a record and, recursively, its dependents. Return the number of records removed."""

    @abstractmethod
    def list(self, kind: EntityKind, query: Optional[ListQuery] = None) -> Tuple[List[Record], int]:
        """
        Return a slice of records and the total count matching the filters.
        - Equality filters on foreign keys, status, priority and flags
        - Case-insensitive substring search over the kind's text fields
        - Insertion order unless a sort key is given
        """

    @abstractmethod
    def total_seconds(self, project_id: str) -> int:
        """Sum of time entry durations over every task of a project. Raises NotFoundError."""

    @abstractmethod
    def task_total_seconds(self, task_id: str) -> int:
        """Sum of time entry durations logged against one task. Raises NotFoundError."""

    # PUBLIC_INTERFACE
    def archive_project(self, project_id: str) -> Record:
        """Mark a project as archived."""
        return self.update(EntityKind.PROJECT, project_id, ProjectUpdate(is_archived=True))

    def close(self) -> None:
        """Release backend resources. Nothing to do for most stores."""

    # Shared helpers for implementations

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _advance(self, previous: datetime) -> datetime:
        """Return a timestamp strictly later than `previous`."""
        now = self._now()
        if now > previous:
            return now
        return previous + timedelta(microseconds=1)

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    @staticmethod
    def _validate(kind: EntityKind, schema: Type[BaseModel], data: Payload) -> BaseModel:
        if isinstance(data, schema):
            return data
        raw = data.model_dump(exclude_unset=True) if isinstance(data, BaseModel) else dict(data)
        try:
            return schema.model_validate(raw)
        except PydanticValidationError as exc:
            logger.debug("Rejected %s payload: %s", kind.value, exc)
            raise ValidationError(
                f"Invalid {kind.label.lower()} data",
                errors=exc.errors(include_url=False, include_context=False),
            ) from exc

    def _create_fields(self, kind: EntityKind, data: Payload) -> Record:
        payload = self._validate(kind, CREATE_SCHEMAS[kind], data)
        values = payload.model_dump()
        if kind is EntityKind.PROJECT:
            values["is_archived"] = False
        return values

    def _update_fields(self, kind: EntityKind, data: Payload) -> Record:
        if kind not in MUTABLE_KINDS:
            raise ValidationError(f"{kind.label} records are append-only and cannot be updated")
        payload = self._validate(kind, UPDATE_SCHEMAS[kind], data)
        assert isinstance(payload, _PartialUpdate)
        return payload.changes()

    @staticmethod
    def _check_references(kind: EntityKind, values: Mapping[str, Any], exists: Callable[[EntityKind, str], bool]) -> None:
        for field, target in FOREIGN_KEYS[kind].items():
            ref = values.get(field)
            if ref is not None and not exists(target, ref):
                logger.warning("Rejected %s write: %s=%s does not exist", kind.value, field, ref)
                raise DanglingReferenceError(field, target, ref)


class InMemoryEntityStore(EntityStore):
    """
    Thread-safe in-memory store suitable for testing and default runtime.

    One lock guards every collection, so foreign-key checks and cascades are
    atomic with the write they belong to. Records are kept in insertion order.
    """

    backend_name = "memory"

    def __init__(self) -> None:
        self._lock = RLock()
        self._tables: Dict[EntityKind, Dict[str, Record]] = {kind: {} for kind in EntityKind}

    def _exists(self, kind: EntityKind, entity_id: str) -> bool:
        return entity_id in self._tables[kind]

    def create(self, kind: EntityKind, data: Payload) -> Record:
        values = self._create_fields(kind, data)
        with self._lock:
            self._check_references(kind, values, self._exists)
            table = self._tables[kind]
            new_id = self._new_id()
            while new_id in table:
                new_id = self._new_id()
            now = self._now()
            record: Record = {"id": new_id, **values, "created_at": now}
            if kind in MUTABLE_KINDS:
                record["updated_at"] = now
            table[new_id] = record
            logger.info("Created %s %s", kind.value, new_id)
            return record.copy()

    def get(self, kind: EntityKind, entity_id: str) -> Record:
        with self._lock:
            record = self._tables[kind].get(entity_id)
            if record is None:
                raise NotFoundError(kind, entity_id)
            return record.copy()

    def update(self, kind: EntityKind, entity_id: str, data: Payload) -> Record:
        with self._lock:
            existing = self._tables[kind].get(entity_id)
            if existing is None:
                raise NotFoundError(kind, entity_id)
            changes = self._update_fields(kind, data)
            self._check_references(kind, changes, self._exists)

            updated = existing.copy()
            updated.update(changes)
            updated["updated_at"] = self._advance(existing["updated_at"])
            self._tables[kind][entity_id] = updated
            logger.info("Updated %s %s (%s)", kind.value, entity_id, ", ".join(sorted(changes)) or "no fields")
            return updated.copy()

    def delete(self, kind: EntityKind, entity_id: str) -> int:
        with self._lock:
            if entity_id not in self._tables[kind]:
                raise NotFoundError(kind, entity_id)
            removed = self._delete_cascade(kind, entity_id)
            logger.info("Deleted %s %s (%d records removed)", kind.value, entity_id, removed)
            return removed

    def _delete_cascade(self, kind: EntityKind, entity_id: str) -> int:
        removed = 0
        for child_kind, field in DEPENDENTS[kind]:
            child_ids = [rid for rid, rec in self._tables[child_kind].items() if rec[field] == entity_id]
            for child_id in child_ids:
                removed += self._delete_cascade(child_kind, child_id)
        del self._tables[kind][entity_id]
        return removed + 1

    def list(self, kind: EntityKind, query: Optional[ListQuery] = None) -> Tuple[List[Record], int]:
        q = query or ListQuery()
        filters = q.equality_filters(kind)
        sort = resolve_sort(kind, q.sort)

        with self._lock:
            items: Iterable[Record] = self._tables[kind].values()

            # Filtering
            if filters:
                items = [r for r in items if all(r[k] == v for k, v in filters.items())]

            if q.visible_to_company is not None:
                items = [r for r in items if r["is_public"] or r["company_id"] == q.visible_to_company]

            if q.search:
                s = q.search.lower()
                searched = SEARCH_FIELDS[kind]
                items = [r for r in items if any(s in (r[f] or "").lower() for f in searched)]

            items = list(items)
            total = len(items)

            # Sorting; sorted() is stable so ties keep insertion order
            if sort is not None:
                field, descending = sort
                items = sorted(items, key=lambda r: _sort_value(r[field]), reverse=descending)

            # Pagination
            start = max(q.offset, 0)
            end = None if q.limit is None else start + max(q.limit, 0)
            page = items[start:end]

            # Return copies to avoid external mutation
            return [r.copy() for r in page], total

    def total_seconds(self, project_id: str) -> int:
        with self._lock:
            if project_id not in self._tables[EntityKind.PROJECT]:
                raise NotFoundError(EntityKind.PROJECT, project_id)
            task_ids = {
                tid for tid, task in self._tables[EntityKind.TASK].items() if task["project_id"] == project_id
            }
            return sum(
                e["duration"] for e in self._tables[EntityKind.TIME_ENTRY].values() if e["task_id"] in task_ids
            )

    def task_total_seconds(self, task_id: str) -> int:
        with self._lock:
            if task_id not in self._tables[EntityKind.TASK]:
                raise NotFoundError(EntityKind.TASK, task_id)
            return sum(
                e["duration"] for e in self._tables[EntityKind.TIME_ENTRY].values() if e["task_id"] == task_id
            )


# PUBLIC_INTERFACE
def get_store(settings: Optional[Settings] = None) -> EntityStore:
    """
    Factory to build the configured store.
    - memory: InMemoryEntityStore
    - sqlite: SQLiteEntityStore at settings.sqlite_db_path
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteEntityStore

        return SQLiteEntityStore(settings.sqlite_db_path)
    return InMemoryEntityStore()
