from __future__ import annotations

import os
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

# Default to the memory backend so importing the app never touches the filesystem
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from src.api.db import SQLiteEntityStore  # noqa: E402
from src.api.main import create_app  # noqa: E402
from src.api.repositories import EntityStore, InMemoryEntityStore  # noqa: E402


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path: Path) -> Generator[EntityStore, None, None]:
    """Every store-level test runs against both backends."""
    if request.param == "sqlite":
        s: EntityStore = SQLiteEntityStore(str(tmp_path / "business.db"))
    else:
        s = InMemoryEntityStore()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """A fresh application with an empty in-memory store per test."""
    app = create_app(store=InMemoryEntityStore())
    with TestClient(app) as c:
        yield c
