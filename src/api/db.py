from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from threading import RLock
from typing import Any, Dict, Generator, List, Optional, Tuple

from .errors import NotFoundError
from .models import DEPENDENTS, MUTABLE_KINDS, SEARCH_FIELDS, EntityKind, Priority, WorkStatus
from .repositories import EntityStore, ListQuery, Payload, Record, resolve_sort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Table:
    name: str
    columns: Tuple[Tuple[str, str], ...]  # (column, declaration) excluding id/timestamps
    mutable: bool = True

    @property
    def column_names(self) -> Tuple[str, ...]:
        names = ("id",) + tuple(c for c, _ in self.columns) + ("created_at",)
        return names + ("updated_at",) if self.mutable else names


_TABLES: Dict[EntityKind, _Table] = {
    EntityKind.COMPANY: _Table(
        "companies",
        (
            ("name", "TEXT NOT NULL"),
            ("contact_person", "TEXT NULL"),
            ("address", "TEXT NULL"),
            ("email", "TEXT NULL"),
            ("phone", "TEXT NULL"),
            ("hourly_rate", "REAL NULL"),
        ),
    ),
    EntityKind.PROJECT: _Table(
        "projects",
        (
            ("name", "TEXT NOT NULL"),
            ("description", "TEXT NULL"),
            ("status", "TEXT NOT NULL"),
            ("priority", "TEXT NOT NULL"),
            ("company_id", "TEXT NULL REFERENCES companies(id) ON DELETE CASCADE"),
            ("is_archived", "INTEGER NOT NULL DEFAULT 0"),
        ),
    ),
    EntityKind.TASK: _Table(
        "tasks",
        (
            ("name", "TEXT NOT NULL"),
            ("description", "TEXT NULL"),
            ("status", "TEXT NOT NULL"),
            ("hourly_rate", "REAL NULL"),
            ("platform", "TEXT NULL"),
            ("contact_person", "TEXT NULL"),
            ("project_id", "TEXT NULL REFERENCES projects(id) ON DELETE CASCADE"),
        ),
    ),
    EntityKind.TIME_ENTRY: _Table(
        "time_entries",
        (
            ("task_id", "TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE"),
            ("user_id", "TEXT NOT NULL"),
            ("duration", "INTEGER NOT NULL CHECK (duration >= 0)"),
            ("notes", "TEXT NULL"),
        ),
        mutable=False,
    ),
    EntityKind.ARTICLE: _Table(
        "articles",
        (
            ("title", "TEXT NOT NULL"),
            ("content", "TEXT NOT NULL"),
            ("category", "TEXT NULL"),
            ("is_public", "INTEGER NOT NULL DEFAULT 0"),
            ("company_id", "TEXT NULL REFERENCES companies(id) ON DELETE CASCADE"),
        ),
    ),
}

_INDEXED = ("company_id", "project_id", "task_id", "user_id", "status")
_BOOL_COLUMNS = {"is_archived", "is_public"}
_ENUM_COLUMNS = {"status": WorkStatus, "priority": Priority}


def _to_sql(column: str, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat(timespec="microseconds")
    if column in _BOOL_COLUMNS:
        return 1 if value else 0
    return value


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# SQLite LOWER() only folds ASCII; case folding must match str.lower() in the memory store
def _py_lower(value: Optional[str]) -> Optional[str]:
    return value.lower() if isinstance(value, str) else value


class SQLiteEntityStore(EntityStore):
    """
    SQLite-backed store implementing the EntityStore contract.

    Each operation runs in its own connection and transaction under the
    store lock. Cascading deletes are performed explicitly so the number of
    removed records can be reported; the schema also declares ON DELETE
    CASCADE foreign keys. A db_path of ':memory:' keeps one shared connection.
    """

    backend_name = "sqlite"

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._lock = RLock()
        self._shared: Optional[sqlite3.Connection] = None
        if db_path == ":memory:":
            self._shared = self._connect()
        else:
            os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.create_function("py_lower", 1, _py_lower, deterministic=True)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        with self._lock:
            conn = self._shared or self._connect()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                if conn is not self._shared:
                    conn.close()

    def close(self) -> None:
        with self._lock:
            if self._shared is not None:
                self._shared.close()
                self._shared = None

    def _init_db(self) -> None:
        with self._conn() as conn:
            for table in _TABLES.values():
                decls = ["id TEXT PRIMARY KEY"]
                decls += [f"{col} {decl}" for col, decl in table.columns]
                decls.append("created_at TEXT NOT NULL")
                if table.mutable:
                    decls.append("updated_at TEXT NOT NULL")
                conn.execute(f"CREATE TABLE IF NOT EXISTS {table.name} ({', '.join(decls)})")
                for col, _ in table.columns:
                    if col in _INDEXED:
                        conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{table.name}_{col} ON {table.name}({col})")

    def _row_to_entity(self, kind: EntityKind, row: sqlite3.Row) -> Record:
        record: Record = {}
        for col in _TABLES[kind].column_names:
            value = row[col]
            if value is not None:
                if col in _BOOL_COLUMNS:
                    value = bool(value)
                elif col in _ENUM_COLUMNS:
                    value = _ENUM_COLUMNS[col](value)
                elif col in ("created_at", "updated_at"):
                    value = datetime.fromisoformat(value)
            record[col] = value
        return record

    def _fetch(self, conn: sqlite3.Connection, kind: EntityKind, entity_id: str) -> Optional[sqlite3.Row]:
        return conn.execute(f"SELECT * FROM {_TABLES[kind].name} WHERE id = ?", (entity_id,)).fetchone()

    def _exists_in(self, conn: sqlite3.Connection):
        def exists(kind: EntityKind, entity_id: str) -> bool:
            return self._fetch(conn, kind, entity_id) is not None

        return exists

    def create(self, kind: EntityKind, data: Payload) -> Record:
        values = self._create_fields(kind, data)
        table = _TABLES[kind]
        with self._conn() as conn:
            self._check_references(kind, values, self._exists_in(conn))
            new_id = self._new_id()
            while self._fetch(conn, kind, new_id) is not None:
                new_id = self._new_id()
            now = self._now()
            record: Record = {"id": new_id, **values, "created_at": now}
            if kind in MUTABLE_KINDS:
                record["updated_at"] = now
            cols = table.column_names
            conn.execute(
                f"INSERT INTO {table.name} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
                [_to_sql(c, record.get(c)) for c in cols],
            )
            row = self._fetch(conn, kind, new_id)
            assert row is not None
            logger.info("Created %s %s", kind.value, new_id)
            return self._row_to_entity(kind, row)

    def get(self, kind: EntityKind, entity_id: str) -> Record:
        with self._conn() as conn:
            row = self._fetch(conn, kind, entity_id)
            if row is None:
                raise NotFoundError(kind, entity_id)
            return self._row_to_entity(kind, row)

    def update(self, kind: EntityKind, entity_id: str, data: Payload) -> Record:
        table = _TABLES[kind]
        with self._conn() as conn:
            row = self._fetch(conn, kind, entity_id)
            if row is None:
                raise NotFoundError(kind, entity_id)
            changes = self._update_fields(kind, data)
            current = self._row_to_entity(kind, row)
            self._check_references(kind, changes, self._exists_in(conn))

            assignments = dict(changes)
            assignments["updated_at"] = self._advance(current["updated_at"])
            set_sql = ", ".join(f"{col} = ?" for col in assignments)
            conn.execute(
                f"UPDATE {table.name} SET {set_sql} WHERE id = ?",
                [*(_to_sql(c, v) for c, v in assignments.items()), entity_id],
            )
            row2 = self._fetch(conn, kind, entity_id)
            assert row2 is not None
            logger.info("Updated %s %s (%s)", kind.value, entity_id, ", ".join(sorted(changes)) or "no fields")
            return self._row_to_entity(kind, row2)

    def delete(self, kind: EntityKind, entity_id: str) -> int:
        with self._conn() as conn:
            if self._fetch(conn, kind, entity_id) is None:
                raise NotFoundError(kind, entity_id)
            removed = self._delete_cascade(conn, kind, entity_id)
            logger.info("Deleted %s %s (%d records removed)", kind.value, entity_id, removed)
            return removed

    def _delete_cascade(self, conn: sqlite3.Connection, kind: EntityKind, entity_id: str) -> int:
        removed = 0
        for child_kind, field in DEPENDENTS[kind]:
            child_rows = conn.execute(
                f"SELECT id FROM {_TABLES[child_kind].name} WHERE {field} = ?", (entity_id,)
            ).fetchall()
            for child in child_rows:
                removed += self._delete_cascade(conn, child_kind, child["id"])
        conn.execute(f"DELETE FROM {_TABLES[kind].name} WHERE id = ?", (entity_id,))
        return removed + 1

    def list(self, kind: EntityKind, query: Optional[ListQuery] = None) -> Tuple[List[Record], int]:
        q = query or ListQuery()
        table = _TABLES[kind]
        clauses: List[str] = []
        params: list = []

        for col, value in q.equality_filters(kind).items():
            clauses.append(f"{col} = ?")
            params.append(_to_sql(col, value))

        if q.visible_to_company is not None:
            clauses.append("(is_public = 1 OR company_id = ?)")
            params.append(q.visible_to_company)

        if q.search:
            like = f"%{_escape_like(q.search.lower())}%"
            searched = SEARCH_FIELDS[kind]
            clauses.append("(" + " OR ".join(f"py_lower({f}) LIKE ? ESCAPE '\\'" for f in searched) + ")")
            params.extend([like] * len(searched))

        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        sort = resolve_sort(kind, q.sort)
        if sort is None:
            order_sql = "ORDER BY rowid ASC"
        else:
            field, descending = sort
            expr = f"py_lower({field})" if field in ("name", "title") else field
            order_sql = f"ORDER BY {expr} {'DESC' if descending else 'ASC'}, rowid ASC"

        limit = -1 if q.limit is None else max(q.limit, 0)
        offset = max(q.offset, 0)

        with self._conn() as conn:
            count_row = conn.execute(f"SELECT COUNT(*) AS cnt FROM {table.name} {where_sql}", params).fetchone()
            total = int(count_row["cnt"]) if count_row else 0

            rows = conn.execute(
                f"""
                SELECT * FROM {table.name}
                {where_sql}
                {order_sql}
                LIMIT ? OFFSET ?
                """,
                [*params, limit, offset],
            ).fetchall()
            return [self._row_to_entity(kind, r) for r in rows], total

    def total_seconds(self, project_id: str) -> int:
        with self._conn() as conn:
            if self._fetch(conn, EntityKind.PROJECT, project_id) is None:
                raise NotFoundError(EntityKind.PROJECT, project_id)
            row = conn.execute(
                """
                SELECT COALESCE(SUM(te.duration), 0) AS total
                FROM time_entries te JOIN tasks t ON te.task_id = t.id
                WHERE t.project_id = ?
                """,
                (project_id,),
            ).fetchone()
            return int(row["total"])

    def task_total_seconds(self, task_id: str) -> int:
        with self._conn() as conn:
            if self._fetch(conn, EntityKind.TASK, task_id) is None:
                raise NotFoundError(EntityKind.TASK, task_id)
            row = conn.execute(
                "SELECT COALESCE(SUM(duration), 0) AS total FROM time_entries WHERE task_id = ?",
                (task_id,),
            ).fetchone()
            return int(row["total"])
