from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ..dependencies import get_entity_store
from ..models import EntityKind, Priority, WorkStatus
from ..repositories import EntityStore, ListQuery
from ..schemas import ProjectCreate, ProjectOut, ProjectUpdate, TimeTotalOut
from ..utils import normalize_sort, pagination_envelope

router = APIRouter(
    prefix="/api/v1/projects",
    tags=["projects"],
)


class ProjectPage(BaseModel):
    """
    Envelope for paginated project lists.
    """
    items: List[ProjectOut] = Field(..., description="List of projects")
    total: int = Field(..., description="Total number of projects matching the query")
    limit: Optional[int] = Field(..., description="Limit applied to the query")
    offset: int = Field(..., description="Offset applied to the query")


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=ProjectOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Project",
    description="Create a project. company_id, when given, must reference an existing company.",
    responses={
        201: {"description": "Project created successfully"},
        422: {"description": "Validation error or unknown company"},
    },
)
def create_project(payload: ProjectCreate, store: EntityStore = Depends(get_entity_store)) -> ProjectOut:
    """
    Create a new project.
    """
    return ProjectOut(**store.create(EntityKind.PROJECT, payload))


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=ProjectPage,
    summary="List Projects",
    description=(
        "List projects in insertion order unless a sort key is given. Archived "
        "projects are hidden unless include_archived=true."
    ),
)
def list_projects(
    limit: int = Query(50, ge=0, le=1000, description="Maximum number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    company_id: Optional[str] = Query(None, description="Only projects of this company"),
    project_status: Optional[WorkStatus] = Query(None, alias="status", description="Filter by status"),
    priority: Optional[Priority] = Query(None, description="Filter by priority"),
    include_archived: bool = Query(False, description="Include archived projects"),
    q: Optional[str] = Query(None, description="Search text for name/description"),
    sort: Optional[str] = Query(None, description="Sort field, '-' prefix for descending"),
    order: Optional[str] = Query(None, description="Override sort direction: 'asc' or 'desc'"),
    store: EntityStore = Depends(get_entity_store),
) -> ProjectPage:
    """
    List projects with pagination and filters.
    """
    query = ListQuery(
        limit=limit,
        offset=offset,
        company_id=company_id,
        status=project_status,
        priority=priority,
        is_archived=None if include_archived else False,
        search=q.strip() if q else None,
        sort=normalize_sort(sort, order),
    )
    items, total = store.list(EntityKind.PROJECT, query)
    envelope = pagination_envelope([ProjectOut(**it) for it in items], total, limit, offset)
    return ProjectPage(**envelope)


# PUBLIC_INTERFACE
@router.get(
    "/{project_id}",
    response_model=ProjectOut,
    summary="Get Project",
    responses={404: {"description": "Project not found"}},
)
def get_project(project_id: str, store: EntityStore = Depends(get_entity_store)) -> ProjectOut:
    return ProjectOut(**store.get(EntityKind.PROJECT, project_id))


# PUBLIC_INTERFACE
@router.put(
    "/{project_id}",
    response_model=ProjectOut,
    summary="Replace Project",
    description="Replace a project. Omitted optional fields are cleared; the archive flag is kept.",
    responses={404: {"description": "Project not found"}},
)
def put_project(
    project_id: str, payload: ProjectCreate, store: EntityStore = Depends(get_entity_store)
) -> ProjectOut:
    update = ProjectUpdate(**payload.model_dump())
    return ProjectOut(**store.update(EntityKind.PROJECT, project_id, update))


# PUBLIC_INTERFACE
@router.patch(
    "/{project_id}",
    response_model=ProjectOut,
    summary="Update Project",
    description="Partially update fields of a project.",
    responses={404: {"description": "Project not found"}},
)
def patch_project(
    project_id: str, payload: ProjectUpdate, store: EntityStore = Depends(get_entity_store)
) -> ProjectOut:
    return ProjectOut(**store.update(EntityKind.PROJECT, project_id, payload))


# PUBLIC_INTERFACE
@router.post(
    "/{project_id}/archive",
    response_model=ProjectOut,
    summary="Archive Project",
    responses={404: {"description": "Project not found"}},
)
def archive_project(project_id: str, store: EntityStore = Depends(get_entity_store)) -> ProjectOut:
    """
    Mark a project as archived. Archived projects drop out of the default listing.
    """
    return ProjectOut(**store.archive_project(project_id))


# PUBLIC_INTERFACE
@router.get(
    "/{project_id}/total-seconds",
    response_model=TimeTotalOut,
    summary="Project Time Total",
    description="Sum of the durations of every time entry logged on the project's tasks.",
    responses={404: {"description": "Project not found"}},
)
def project_total_seconds(project_id: str, store: EntityStore = Depends(get_entity_store)) -> TimeTotalOut:
    return TimeTotalOut(id=project_id, total_seconds=store.total_seconds(project_id))


# PUBLIC_INTERFACE
@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Project",
    description="Delete a project together with its tasks and their time entries.",
    responses={
        204: {"description": "Project deleted"},
        404: {"description": "Project not found"},
    },
)
def delete_project(project_id: str, store: EntityStore = Depends(get_entity_store)) -> None:
    store.delete(EntityKind.PROJECT, project_id)
    return None
