from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ..dependencies import get_entity_store
from ..models import EntityKind
from ..repositories import EntityStore, ListQuery
from ..schemas import TimeEntryCreate, TimeEntryOut
from ..utils import normalize_sort, pagination_envelope

# Time entries are an append-only ledger: no PUT/PATCH routes.
router = APIRouter(
    prefix="/api/v1/time-entries",
    tags=["time-entries"],
)


class TimeEntryPage(BaseModel):
    """
    Envelope for paginated time entry lists.
    """
    items: List[TimeEntryOut] = Field(..., description="List of time entries")
    total: int = Field(..., description="Total number of entries matching the query")
    limit: Optional[int] = Field(..., description="Limit applied to the query")
    offset: int = Field(..., description="Offset applied to the query")


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TimeEntryOut,
    status_code=status.HTTP_201_CREATED,
    summary="Log Time",
    description="Log a duration (in seconds) against an existing task.",
    responses={
        201: {"description": "Time entry created"},
        422: {"description": "Validation error or unknown task"},
    },
)
def create_time_entry(payload: TimeEntryCreate, store: EntityStore = Depends(get_entity_store)) -> TimeEntryOut:
    return TimeEntryOut(**store.create(EntityKind.TIME_ENTRY, payload))


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=TimeEntryPage,
    summary="List Time Entries",
    description="List time entries in insertion order unless a sort key (created_at, duration) is given.",
)
def list_time_entries(
    limit: int = Query(50, ge=0, le=1000, description="Maximum number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    task_id: Optional[str] = Query(None, description="Only entries of this task"),
    user_id: Optional[str] = Query(None, description="Only entries logged by this user"),
    q: Optional[str] = Query(None, description="Search text for notes"),
    sort: Optional[str] = Query(None, description="Sort field, '-' prefix for descending"),
    order: Optional[str] = Query(None, description="Override sort direction: 'asc' or 'desc'"),
    store: EntityStore = Depends(get_entity_store),
) -> TimeEntryPage:
    query = ListQuery(
        limit=limit,
        offset=offset,
        task_id=task_id,
        user_id=user_id,
        search=q.strip() if q else None,
        sort=normalize_sort(sort, order),
    )
    items, total = store.list(EntityKind.TIME_ENTRY, query)
    envelope = pagination_envelope([TimeEntryOut(**it) for it in items], total, limit, offset)
    return TimeEntryPage(**envelope)


# PUBLIC_INTERFACE
@router.get(
    "/{entry_id}",
    response_model=TimeEntryOut,
    summary="Get Time Entry",
    responses={404: {"description": "Time entry not found"}},
)
def get_time_entry(entry_id: str, store: EntityStore = Depends(get_entity_store)) -> TimeEntryOut:
    return TimeEntryOut(**store.get(EntityKind.TIME_ENTRY, entry_id))


# PUBLIC_INTERFACE
@router.delete(
    "/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Time Entry",
    responses={
        204: {"description": "Time entry deleted"},
        404: {"description": "Time entry not found"},
    },
)
def delete_time_entry(entry_id: str, store: EntityStore = Depends(get_entity_store)) -> None:
    store.delete(EntityKind.TIME_ENTRY, entry_id)
    return None
