from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ..dependencies import get_entity_store
from ..models import EntityKind
from ..repositories import EntityStore, ListQuery
from ..schemas import CompanyCreate, CompanyOut, CompanyUpdate
from ..utils import normalize_sort, pagination_envelope

router = APIRouter(
    prefix="/api/v1/companies",
    tags=["companies"],
)


class CompanyPage(BaseModel):
    """
    Envelope for paginated company lists.
    """
    items: List[CompanyOut] = Field(..., description="List of companies")
    total: int = Field(..., description="Total number of companies matching the query")
    limit: Optional[int] = Field(..., description="Limit applied to the query")
    offset: int = Field(..., description="Offset applied to the query")


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=CompanyOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Company",
    description="Create a new client company and return the created resource.",
    responses={
        201: {"description": "Company created successfully"},
        422: {"description": "Validation error"},
    },
)
def create_company(payload: CompanyCreate, store: EntityStore = Depends(get_entity_store)) -> CompanyOut:
    """
    Create a new company.
    """
    created = store.create(EntityKind.COMPANY, payload)
    return CompanyOut(**created)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=CompanyPage,
    summary="List Companies",
    description=(
        "List companies in insertion order unless a sort key is given.\n\n"
        "Query parameters:\n"
        "- limit / offset: pagination\n"
        "- q: search in name, contact person and email\n"
        "- sort: created_at, updated_at or name, '-' prefix for descending\n"
        "- order: asc or desc (overrides the direction in sort)"
    ),
)
def list_companies(
    limit: int = Query(50, ge=0, le=1000, description="Maximum number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    q: Optional[str] = Query(None, description="Search text"),
    sort: Optional[str] = Query(None, description="Sort field, '-' prefix for descending"),
    order: Optional[str] = Query(None, description="Override sort direction: 'asc' or 'desc'"),
    store: EntityStore = Depends(get_entity_store),
) -> CompanyPage:
    """
    List companies with pagination and search.
    """
    query = ListQuery(
        limit=limit,
        offset=offset,
        search=q.strip() if q else None,
        sort=normalize_sort(sort, order),
    )
    items, total = store.list(EntityKind.COMPANY, query)
    envelope = pagination_envelope([CompanyOut(**it) for it in items], total, limit, offset)
    return CompanyPage(**envelope)


# PUBLIC_INTERFACE
@router.get(
    "/{company_id}",
    response_model=CompanyOut,
    summary="Get Company",
    responses={404: {"description": "Company not found"}},
)
def get_company(company_id: str, store: EntityStore = Depends(get_entity_store)) -> CompanyOut:
    """
    Retrieve a single company by its ID.
    """
    return CompanyOut(**store.get(EntityKind.COMPANY, company_id))


# PUBLIC_INTERFACE
@router.put(
    "/{company_id}",
    response_model=CompanyOut,
    summary="Replace Company",
    description="Replace a company. Omitted optional fields are cleared.",
    responses={404: {"description": "Company not found"}},
)
def put_company(
    company_id: str, payload: CompanyCreate, store: EntityStore = Depends(get_entity_store)
) -> CompanyOut:
    """
    Full update expressed as an update that sets every field.
    """
    update = CompanyUpdate(**payload.model_dump())
    return CompanyOut(**store.update(EntityKind.COMPANY, company_id, update))


# PUBLIC_INTERFACE
@router.patch(
    "/{company_id}",
    response_model=CompanyOut,
    summary="Update Company",
    description="Partially update fields of a company.",
    responses={404: {"description": "Company not found"}},
)
def patch_company(
    company_id: str, payload: CompanyUpdate, store: EntityStore = Depends(get_entity_store)
) -> CompanyOut:
    return CompanyOut(**store.update(EntityKind.COMPANY, company_id, payload))


# PUBLIC_INTERFACE
@router.delete(
    "/{company_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Company",
    description="Delete a company together with its projects (and their tasks and time entries) and its articles.",
    responses={
        204: {"description": "Company deleted"},
        404: {"description": "Company not found"},
    },
)
def delete_company(company_id: str, store: EntityStore = Depends(get_entity_store)) -> None:
    store.delete(EntityKind.COMPANY, company_id)
    return None
