from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Dict, FrozenSet, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from .models import EntityKind, Priority, WorkStatus


def _required_text(value: Optional[str], field: str) -> str:
    """
    Strip whitespace and reject missing or blank values.
    """
    if value is None:
        raise ValueError(f"{field} is required")
    if not isinstance(value, str):
        raise ValueError(f"{field} must be a string")
    s = value.strip()
    if not s:
        raise ValueError(f"{field} must not be empty")
    return s


def _optional_text(value: Optional[str]) -> Optional[str]:
    """
    Strip whitespace; blank strings (as sent by forms) become None.
    """
    if not isinstance(value, str):
        return value
    s = value.strip()
    return s or None


class _PartialUpdate(BaseModel):
    """
    Base for update payloads. Every field is optional and only fields present in
    the payload are applied; an explicit null is rejected for the fields listed
    in `non_nullable`.
    """

    non_nullable: ClassVar[FrozenSet[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_required(self):
        for name in sorted(self.non_nullable & self.model_fields_set):
            if getattr(self, name) is None:
                raise ValueError(f"{name} may not be null")
        return self

    def changes(self) -> Dict[str, object]:
        """Return only the explicitly provided fields."""
        return {name: getattr(self, name) for name in self.model_fields_set}


# ---------------------------------------------------------------------------
# Company
# ---------------------------------------------------------------------------

# PUBLIC_INTERFACE
class CompanyCreate(BaseModel):
    """
    Schema for creating a company.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Acme",
                "contact_person": "Jane Doe",
                "email": "jane@acme.example",
                "hourly_rate": 95.0,
            }
        }
    )

    name: str = Field(..., description="Company name", max_length=200)
    contact_person: Optional[str] = Field(default=None, description="Primary contact person")
    address: Optional[str] = Field(default=None, description="Postal address")
    email: Optional[str] = Field(default=None, description="Contact email address")
    phone: Optional[str] = Field(default=None, description="Contact phone number")
    hourly_rate: Optional[float] = Field(default=None, ge=0, description="Default hourly rate")

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> str:
        return _required_text(v, "name")

    @field_validator("contact_person", "address", "email", "phone", mode="before")
    @classmethod
    def clean_optional(cls, v: Optional[str]) -> Optional[str]:
        return _optional_text(v)


# PUBLIC_INTERFACE
class CompanyUpdate(_PartialUpdate):
    """Partial update of a company; omitted fields are left unchanged."""

    non_nullable: ClassVar[FrozenSet[str]] = frozenset({"name"})

    name: Optional[str] = Field(default=None, description="Company name", max_length=200)
    contact_person: Optional[str] = Field(default=None)
    address: Optional[str] = Field(default=None)
    email: Optional[str] = Field(default=None)
    phone: Optional[str] = Field(default=None)
    hourly_rate: Optional[float] = Field(default=None, ge=0)

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _required_text(v, "name")

    @field_validator("contact_person", "address", "email", "phone", mode="before")
    @classmethod
    def clean_optional(cls, v: Optional[str]) -> Optional[str]:
        return _optional_text(v)


# PUBLIC_INTERFACE
class CompanyOut(BaseModel):
    """Company as returned by the API."""

    id: str = Field(..., description="Unique identifier of the company")
    name: str
    contact_person: Optional[str] = None
    address: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    hourly_rate: Optional[float] = None
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------

# PUBLIC_INTERFACE
class ProjectCreate(BaseModel):
    """
    Schema for creating a project. New projects are never archived.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Website relaunch",
                "status": "Incoming",
                "priority": "High",
                "company_id": "3f2b6c1e9d7a4e0c8b5a1f2d3c4b5a69",
            }
        }
    )

    name: str = Field(..., description="Project name", max_length=200)
    description: Optional[str] = Field(default=None, description="Optional description")
    status: WorkStatus = Field(default=WorkStatus.INCOMING, description="Project status")
    priority: Priority = Field(default=Priority.MEDIUM, description="Project priority")
    company_id: Optional[str] = Field(default=None, description="Owning company id")

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> str:
        return _required_text(v, "name")

    @field_validator("description", "company_id", mode="before")
    @classmethod
    def clean_optional(cls, v: Optional[str]) -> Optional[str]:
        return _optional_text(v)


# PUBLIC_INTERFACE
class ProjectUpdate(_PartialUpdate):
    """Partial update of a project."""

    non_nullable: ClassVar[FrozenSet[str]] = frozenset({"name", "status", "priority", "is_archived"})

    name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None)
    status: Optional[WorkStatus] = Field(default=None)
    priority: Optional[Priority] = Field(default=None)
    company_id: Optional[str] = Field(default=None)
    is_archived: Optional[bool] = Field(default=None)

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _required_text(v, "name")

    @field_validator("description", "company_id", mode="before")
    @classmethod
    def clean_optional(cls, v: Optional[str]) -> Optional[str]:
        return _optional_text(v)


# PUBLIC_INTERFACE
class ProjectOut(BaseModel):
    """Project as returned by the API."""

    id: str
    name: str
    description: Optional[str] = None
    status: WorkStatus
    priority: Priority
    company_id: Optional[str] = None
    is_archived: bool
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """Schema for creating a task."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Design",
                "status": "Incoming",
                "platform": "Figma",
                "project_id": "9a1c0e2f5b7d4c3a8e6f1b2d3c4a5e6f",
            }
        }
    )

    name: str = Field(..., description="Task name", max_length=200)
    description: Optional[str] = Field(default=None)
    status: WorkStatus = Field(default=WorkStatus.INCOMING)
    hourly_rate: Optional[float] = Field(default=None, ge=0, description="Overrides the company rate")
    platform: Optional[str] = Field(default=None)
    contact_person: Optional[str] = Field(default=None)
    project_id: Optional[str] = Field(default=None, description="Owning project id")

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> str:
        return _required_text(v, "name")

    @field_validator("description", "platform", "contact_person", "project_id", mode="before")
    @classmethod
    def clean_optional(cls, v: Optional[str]) -> Optional[str]:
        return _optional_text(v)


# PUBLIC_INTERFACE
class TaskUpdate(_PartialUpdate):
    """Partial update of a task."""

    non_nullable: ClassVar[FrozenSet[str]] = frozenset({"name", "status"})

    name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None)
    status: Optional[WorkStatus] = Field(default=None)
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    platform: Optional[str] = Field(default=None)
    contact_person: Optional[str] = Field(default=None)
    project_id: Optional[str] = Field(default=None)

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _required_text(v, "name")

    @field_validator("description", "platform", "contact_person", "project_id", mode="before")
    @classmethod
    def clean_optional(cls, v: Optional[str]) -> Optional[str]:
        return _optional_text(v)


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """Task as returned by the API."""

    id: str
    name: str
    description: Optional[str] = None
    status: WorkStatus
    hourly_rate: Optional[float] = None
    platform: Optional[str] = None
    contact_person: Optional[str] = None
    project_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Time entry (append-only: no update schema)
# ---------------------------------------------------------------------------

# PUBLIC_INTERFACE
class TimeEntryCreate(BaseModel):
    """Schema for logging time against a task."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "task_id": "0d4e7a9b1c2f4e5d8a3b6c9f1e2d3a4b",
                "user_id": "u1",
                "duration": 3600,
                "notes": "Wireframes",
            }
        }
    )

    task_id: str = Field(..., description="Task the time was spent on")
    user_id: str = Field(..., description="User who logged the time")
    duration: int = Field(..., ge=0, strict=True, description="Duration in whole seconds")
    notes: Optional[str] = Field(default=None)

    @field_validator("task_id", "user_id", mode="before")
    @classmethod
    def validate_ids(cls, v: Optional[str], info: ValidationInfo) -> str:
        return _required_text(v, info.field_name)

    @field_validator("notes", mode="before")
    @classmethod
    def clean_optional(cls, v: Optional[str]) -> Optional[str]:
        return _optional_text(v)


# PUBLIC_INTERFACE
class TimeEntryOut(BaseModel):
    """Time entry as returned by the API."""

    id: str
    task_id: str
    user_id: str
    duration: int
    notes: Optional[str] = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Article
# ---------------------------------------------------------------------------

# PUBLIC_INTERFACE
class ArticleCreate(BaseModel):
    """Schema for creating a knowledge-base article."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Resetting your password",
                "content": "Open the login page and choose 'Forgot password'.",
                "category": "Accounts",
                "is_public": True,
            }
        }
    )

    title: str = Field(..., description="Article title", max_length=300)
    content: str = Field(..., description="Article body")
    category: Optional[str] = Field(default=None)
    is_public: bool = Field(default=False, description="Visible to every company")
    company_id: Optional[str] = Field(default=None, description="Company the article is scoped to")

    @field_validator("title", "content", mode="before")
    @classmethod
    def validate_text(cls, v: Optional[str], info: ValidationInfo) -> str:
        return _required_text(v, info.field_name)

    @field_validator("category", "company_id", mode="before")
    @classmethod
    def clean_optional(cls, v: Optional[str]) -> Optional[str]:
        return _optional_text(v)


# PUBLIC_INTERFACE
class ArticleUpdate(_PartialUpdate):
    """Partial update of an article."""

    non_nullable: ClassVar[FrozenSet[str]] = frozenset({"title", "content", "is_public"})

    title: Optional[str] = Field(default=None, max_length=300)
    content: Optional[str] = Field(default=None)
    category: Optional[str] = Field(default=None)
    is_public: Optional[bool] = Field(default=None)
    company_id: Optional[str] = Field(default=None)

    @field_validator("title", "content", mode="before")
    @classmethod
    def validate_text(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        return None if v is None else _required_text(v, info.field_name)

    @field_validator("category", "company_id", mode="before")
    @classmethod
    def clean_optional(cls, v: Optional[str]) -> Optional[str]:
        return _optional_text(v)


# PUBLIC_INTERFACE
class ArticleOut(BaseModel):
    """Article as returned by the API."""

    id: str
    title: str
    content: str
    category: Optional[str] = None
    is_public: bool
    company_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


CREATE_SCHEMAS: Dict[EntityKind, Type[BaseModel]] = {
    EntityKind.COMPANY: CompanyCreate,
    EntityKind.PROJECT: ProjectCreate,
    EntityKind.TASK: TaskCreate,
    EntityKind.TIME_ENTRY: TimeEntryCreate,
    EntityKind.ARTICLE: ArticleCreate,
}

UPDATE_SCHEMAS: Dict[EntityKind, Type[_PartialUpdate]] = {
    EntityKind.COMPANY: CompanyUpdate,
    EntityKind.PROJECT: ProjectUpdate,
    EntityKind.TASK: TaskUpdate,
    EntityKind.ARTICLE: ArticleUpdate,
}


# PUBLIC_INTERFACE
class TimeTotalOut(BaseModel):
    """Total logged time for a project or task."""

    id: str = Field(..., description="Project or task id")
    total_seconds: int = Field(..., ge=0, description="Sum of time entry durations in seconds")
