from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import NotFoundError, StoreError
from .logging_setup import setup_logging
from .repositories import EntityStore, get_store
from .routers import articles as articles_router
from .routers import companies as companies_router
from .routers import projects as projects_router
from .routers import tasks as tasks_router
from .routers import time_entries as time_entries_router
from .settings import Settings, get_settings
from .utils import store_error_body

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "companies", "description": "CRUD operations for client companies."},
    {"name": "projects", "description": "CRUD operations for projects, archiving and time totals."},
    {"name": "tasks", "description": "CRUD operations for tasks and per-task time totals."},
    {"name": "time-entries", "description": "Append-only ledger of logged work: create, read, delete."},
    {"name": "articles", "description": "CRUD operations for knowledge-base articles."},
]


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


async def store_exception_handler(request: Request, exc: StoreError) -> JSONResponse:
    """
    Map store errors to HTTP: unknown ids are 404, rejected writes are 422.
    """
    status_code = 404 if isinstance(exc, NotFoundError) else 422
    return JSONResponse(status_code=status_code, content=store_error_body(exc))


# PUBLIC_INTERFACE
def create_app(store: Optional[EntityStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application around an entity store.

    Args:
        store: Store to serve; built from settings (PERSISTENCE_BACKEND) when omitted.
        settings: Settings to use; loaded from the environment when omitted.

    Returns:
        The configured FastAPI app. The store is available as app.state.store.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="Business Manager Backend",
        description="Backend API for companies, projects, tasks, time tracking and knowledge-base articles.",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    app.state.store = store if store is not None else get_store(settings)
    logger.info("Serving %s entity store", app.state.store.backend_name)

    # Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StoreError, store_exception_handler)

    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health and the store backend in use.
        """
        return {"message": "Healthy", "backend": app.state.store.backend_name}

    app.include_router(companies_router.router)
    app.include_router(projects_router.router)
    app.include_router(tasks_router.router)
    app.include_router(time_entries_router.router)
    app.include_router(articles_router.router)
    return app


app = create_app()
