from __future__ import annotations

from fastapi import Request

from .repositories import EntityStore


# PUBLIC_INTERFACE
def get_entity_store(request: Request) -> EntityStore:
    """
    FastAPI dependency returning the store owned by the running application
    (set by create_app on app.state.store).
    """
    return request.app.state.store
