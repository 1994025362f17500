from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ..dependencies import get_entity_store
from ..models import EntityKind, WorkStatus
from ..repositories import EntityStore, ListQuery
from ..schemas import TaskCreate, TaskOut, TaskUpdate, TimeTotalOut
from ..utils import normalize_sort, pagination_envelope

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
)


class TaskPage(BaseModel):
    """
    Envelope for paginated task lists.
    """
    items: List[TaskOut] = Field(..., description="List of tasks")
    total: int = Field(..., description="Total number of tasks matching the query")
    limit: Optional[int] = Field(..., description="Limit applied to the query")
    offset: int = Field(..., description="Offset applied to the query")


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a task. project_id, when given, must reference an existing project.",
    responses={
        201: {"description": "Task created successfully"},
        422: {"description": "Validation error or unknown project"},
    },
)
def create_task(payload: TaskCreate, store: EntityStore = Depends(get_entity_store)) -> TaskOut:
    return TaskOut(**store.create(EntityKind.TASK, payload))


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=TaskPage,
    summary="List Tasks",
    description="List tasks in insertion order unless a sort key is given; filter by project or status.",
)
def list_tasks(
    limit: int = Query(50, ge=0, le=1000, description="Maximum number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    project_id: Optional[str] = Query(None, description="Only tasks of this project"),
    task_status: Optional[WorkStatus] = Query(None, alias="status", description="Filter by status"),
    q: Optional[str] = Query(None, description="Search text for name/description/platform"),
    sort: Optional[str] = Query(None, description="Sort field, '-' prefix for descending"),
    order: Optional[str] = Query(None, description="Override sort direction: 'asc' or 'desc'"),
    store: EntityStore = Depends(get_entity_store),
) -> TaskPage:
    query = ListQuery(
        limit=limit,
        offset=offset,
        project_id=project_id,
        status=task_status,
        search=q.strip() if q else None,
        sort=normalize_sort(sort, order),
    )
    items, total = store.list(EntityKind.TASK, query)
    envelope = pagination_envelope([TaskOut(**it) for it in items], total, limit, offset)
    return TaskPage(**envelope)


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    responses={404: {"description": "Task not found"}},
)
def get_task(task_id: str, store: EntityStore = Depends(get_entity_store)) -> TaskOut:
    return TaskOut(**store.get(EntityKind.TASK, task_id))


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Replace Task",
    description="Replace a task. Omitted optional fields are cleared.",
    responses={404: {"description": "Task not found"}},
)
def put_task(task_id: str, payload: TaskCreate, store: EntityStore = Depends(get_entity_store)) -> TaskOut:
    update = TaskUpdate(**payload.model_dump())
    return TaskOut(**store.update(EntityKind.TASK, task_id, update))


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description="Partially update fields of a task.",
    responses={404: {"description": "Task not found"}},
)
def patch_task(task_id: str, payload: TaskUpdate, store: EntityStore = Depends(get_entity_store)) -> TaskOut:
    return TaskOut(**store.update(EntityKind.TASK, task_id, payload))


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}/total-seconds",
    response_model=TimeTotalOut,
    summary="Task Time Total",
    responses={404: {"description": "Task not found"}},
)
def task_total_seconds(task_id: str, store: EntityStore = Depends(get_entity_store)) -> TimeTotalOut:
    return TimeTotalOut(id=task_id, total_seconds=store.task_total_seconds(task_id))


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    description="Delete a task together with its time entries.",
    responses={
        204: {"description": "Task deleted"},
        404: {"description": "Task not found"},
    },
)
def delete_task(task_id: str, store: EntityStore = Depends(get_entity_store)) -> None:
    store.delete(EntityKind.TASK, task_id)
    return None
