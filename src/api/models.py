from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, TypedDict


# PUBLIC_INTERFACE
class EntityKind(str, Enum):
    """The five record collections held by an entity store."""

    COMPANY = "company"
    PROJECT = "project"
    TASK = "task"
    TIME_ENTRY = "time_entry"
    ARTICLE = "article"

    @property
    def label(self) -> str:
        """Human readable name used in error messages ("Time entry not found")."""
        return self.value.replace("_", " ").capitalize()


# PUBLIC_INTERFACE
class WorkStatus(str, Enum):
    """Lifecycle status shared by projects and tasks."""

    INCOMING = "Incoming"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    INVOICED = "Invoiced"


# PUBLIC_INTERFACE
class Priority(str, Enum):
    """Project priority."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


# PUBLIC_INTERFACE
class CompanyEntity(TypedDict):
    """
    A client company.

    Fields:
    - id: Opaque unique identifier assigned by the store
    - name: Company name (non-empty)
    - contact_person/address/email/phone: Optional contact details
    - hourly_rate: Optional default billing rate
    - created_at/updated_at: Store-managed timestamps
    """

    id: str
    name: str
    contact_person: Optional[str]
    address: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    hourly_rate: Optional[float]
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class ProjectEntity(TypedDict):
    """A project, optionally owned by a company."""

    id: str
    name: str
    description: Optional[str]
    status: WorkStatus
    priority: Priority
    company_id: Optional[str]
    is_archived: bool
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """A unit of work, optionally attached to a project."""

    id: str
    name: str
    description: Optional[str]
    status: WorkStatus
    hourly_rate: Optional[float]
    platform: Optional[str]
    contact_person: Optional[str]
    project_id: Optional[str]
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class TimeEntryEntity(TypedDict):
    """
    Logged work against a task. Entries are append-only, so there is no
    updated_at.
    """

    id: str
    task_id: str
    user_id: str
    duration: int
    notes: Optional[str]
    created_at: datetime


# PUBLIC_INTERFACE
class ArticleEntity(TypedDict):
    """A knowledge-base article, public or scoped to one company."""

    id: str
    title: str
    content: str
    category: Optional[str]
    is_public: bool
    company_id: Optional[str]
    created_at: datetime
    updated_at: datetime


ENTITY_FIELDS: Dict[EntityKind, Tuple[str, ...]] = {
    EntityKind.COMPANY: tuple(CompanyEntity.__annotations__),
    EntityKind.PROJECT: tuple(ProjectEntity.__annotations__),
    EntityKind.TASK: tuple(TaskEntity.__annotations__),
    EntityKind.TIME_ENTRY: tuple(TimeEntryEntity.__annotations__),
    EntityKind.ARTICLE: tuple(ArticleEntity.__annotations__),
}

# Free-text fields matched by list searches.
SEARCH_FIELDS: Dict[EntityKind, Tuple[str, ...]] = {
    EntityKind.COMPANY: ("name", "contact_person", "email"),
    EntityKind.PROJECT: ("name", "description"),
    EntityKind.TASK: ("name", "description", "platform"),
    EntityKind.TIME_ENTRY: ("notes",),
    EntityKind.ARTICLE: ("title", "content", "category"),
}

# Foreign keys per kind: field name -> referenced kind.
FOREIGN_KEYS: Dict[EntityKind, Dict[str, EntityKind]] = {
    EntityKind.COMPANY: {},
    EntityKind.PROJECT: {"company_id": EntityKind.COMPANY},
    EntityKind.TASK: {"project_id": EntityKind.PROJECT},
    EntityKind.TIME_ENTRY: {"task_id": EntityKind.TASK},
    EntityKind.ARTICLE: {"company_id": EntityKind.COMPANY},
}


def _dependents() -> Dict[EntityKind, List[Tuple[EntityKind, str]]]:
    result: Dict[EntityKind, List[Tuple[EntityKind, str]]] = {kind: [] for kind in EntityKind}
    for kind, fks in FOREIGN_KEYS.items():
        for field, target in fks.items():
            result[target].append((kind, field))
    return result


# Reverse of FOREIGN_KEYS: kind -> [(dependent kind, field pointing at it)].
# Deletes cascade along these edges.
DEPENDENTS: Dict[EntityKind, List[Tuple[EntityKind, str]]] = _dependents()

# Kinds whose records carry updated_at.
MUTABLE_KINDS = frozenset(kind for kind in EntityKind if kind is not EntityKind.TIME_ENTRY)
