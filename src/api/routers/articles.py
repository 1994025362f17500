from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ..dependencies import get_entity_store
from ..models import EntityKind
from ..repositories import EntityStore, ListQuery
from ..schemas import ArticleCreate, ArticleOut, ArticleUpdate
from ..utils import normalize_sort, pagination_envelope

router = APIRouter(
    prefix="/api/v1/articles",
    tags=["articles"],
)


class ArticlePage(BaseModel):
    """
    Envelope for paginated article lists.
    """
    items: List[ArticleOut] = Field(..., description="List of articles")
    total: int = Field(..., description="Total number of articles matching the query")
    limit: Optional[int] = Field(..., description="Limit applied to the query")
    offset: int = Field(..., description="Offset applied to the query")


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=ArticleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Article",
    description="Create a knowledge-base article, optionally scoped to a company.",
    responses={
        201: {"description": "Article created successfully"},
        422: {"description": "Validation error or unknown company"},
    },
)
def create_article(payload: ArticleCreate, store: EntityStore = Depends(get_entity_store)) -> ArticleOut:
    return ArticleOut(**store.create(EntityKind.ARTICLE, payload))


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=ArticlePage,
    summary="List Articles",
    description=(
        "List articles in insertion order unless a sort key is given.\n\n"
        "- company_id: only articles scoped to this company\n"
        "- visible_to_company: public articles plus the ones scoped to this company\n"
        "- is_public / category: equality filters\n"
        "- q: search in title, content and category"
    ),
)
def list_articles(
    limit: int = Query(50, ge=0, le=1000, description="Maximum number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    company_id: Optional[str] = Query(None, description="Only articles of this company"),
    visible_to_company: Optional[str] = Query(None, description="Public articles plus this company's"),
    is_public: Optional[bool] = Query(None, description="Filter by public flag"),
    category: Optional[str] = Query(None, description="Filter by category"),
    q: Optional[str] = Query(None, description="Search text"),
    sort: Optional[str] = Query(None, description="Sort field, '-' prefix for descending"),
    order: Optional[str] = Query(None, description="Override sort direction: 'asc' or 'desc'"),
    store: EntityStore = Depends(get_entity_store),
) -> ArticlePage:
    query = ListQuery(
        limit=limit,
        offset=offset,
        company_id=company_id,
        visible_to_company=visible_to_company,
        is_public=is_public,
        category=category,
        search=q.strip() if q else None,
        sort=normalize_sort(sort, order),
    )
    items, total = store.list(EntityKind.ARTICLE, query)
    envelope = pagination_envelope([ArticleOut(**it) for it in items], total, limit, offset)
    return ArticlePage(**envelope)


# PUBLIC_INTERFACE
@router.get(
    "/{article_id}",
    response_model=ArticleOut,
    summary="Get Article",
    responses={404: {"description": "Article not found"}},
)
def get_article(article_id: str, store: EntityStore = Depends(get_entity_store)) -> ArticleOut:
    return ArticleOut(**store.get(EntityKind.ARTICLE, article_id))


# PUBLIC_INTERFACE
@router.put(
    "/{article_id}",
    response_model=ArticleOut,
    summary="Replace Article",
    description="Replace an article. Omitted optional fields are cleared.",
    responses={404: {"description": "Article not found"}},
)
def put_article(
    article_id: str, payload: ArticleCreate, store: EntityStore = Depends(get_entity_store)
) -> ArticleOut:
    update = ArticleUpdate(**payload.model_dump())
    return ArticleOut(**store.update(EntityKind.ARTICLE, article_id, update))


# PUBLIC_INTERFACE
@router.patch(
    "/{article_id}",
    response_model=ArticleOut,
    summary="Update Article",
    description="Partially update fields of an article.",
    responses={404: {"description": "Article not found"}},
)
def patch_article(
    article_id: str, payload: ArticleUpdate, store: EntityStore = Depends(get_entity_store)
) -> ArticleOut:
    return ArticleOut(**store.update(EntityKind.ARTICLE, article_id, payload))


# PUBLIC_INTERFACE
@router.delete(
    "/{article_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Article",
    responses={
        204: {"description": "Article deleted"},
        404: {"description": "Article not found"},
    },
)
def delete_article(article_id: str, store: EntityStore = Depends(get_entity_store)) -> None:
    store.delete(EntityKind.ARTICLE, article_id)
    return None
