"""Workflow record storage backends.

Beginner terms:
- Migration: creating/updating database tables before normal reads/writes.
- CRUD: create, read, update, delete operations.
- Coalesce: keep the stored value when the update supplies nothing for a field.
- Row factory: returns query rows as dict-like objects instead of tuples.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Protocol

from .errors import StorageError, WorkflowValidationError
from .models import Workflow


class WorkflowStorage(Protocol):
    def migrate(self) -> None: ...

    def create(self, name: str | None, description: str | None, url: str | None) -> Workflow: ...

    def get(self, workflow_id: int) -> Workflow | None: ...

    def list(self) -> list[Workflow]: ...

    def update(
        self,
        workflow_id: int,
        *,
        name: str | None = None,
        description: str | None = None,
        url: str | None = None,
    ) -> Workflow | None: ...

    def delete(self, workflow_id: int) -> bool: ...


def validate_new_workflow(name: str | None, description: str | None, url: str | None) -> None:
    """Reject creation when any required field is missing or empty."""
    if not name or not description or not url:
        raise WorkflowValidationError()


def next_modified_at(previous: datetime | None = None) -> datetime:
    """Current UTC time, nudged past ``previous`` so updates always move forward."""
    now = datetime.now(tz=UTC)
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


class SqliteWorkflowStorage:
    """Thread-safe SQLite-backed storage for Workflow records."""

    def __init__(self, database_path: str | Path) -> None:
        if not str(database_path):
            raise ValueError("database_path is required")
        self.database_path = Path(database_path).expanduser()
        # Lock guards DB operations done through this storage instance.
        self._lock = threading.Lock()

    def migrate(self) -> None:
        """Create the database file and workflows table if they do not already exist."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect("Error initializing workflow storage") as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS workflows (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL,
                    url TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    modified_at TEXT NOT NULL
                )
                """)

    def create(self, name: str | None, description: str | None, url: str | None) -> Workflow:
        """Insert a new workflow row and return the stored record."""
        validate_new_workflow(name, description, url)
        now = next_modified_at()
        with self._connect("Error creating workflow") as conn:
            cursor = conn.execute(
                """
                INSERT INTO workflows (name, description, url, created_at, modified_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (name, description, url, now.isoformat(), now.isoformat()),
            )
            row = conn.execute(
                "SELECT * FROM workflows WHERE id = ?",
                (cursor.lastrowid,),
            ).fetchone()
        if row is None:
            raise StorageError("Error creating workflow")
        return self._row_to_workflow(row)

    def get(self, workflow_id: int) -> Workflow | None:
        with self._connect("Error fetching workflow") as conn:
            row = conn.execute(
                "SELECT * FROM workflows WHERE id = ?",
                (workflow_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_workflow(row)

    def list(self) -> list[Workflow]:
        with self._connect("Error fetching workflows") as conn:
            rows = conn.execute("SELECT * FROM workflows ORDER BY id").fetchall()
        return [self._row_to_workflow(row) for row in rows]

    def update(
        self,
        workflow_id: int,
        *,
        name: str | None = None,
        description: str | None = None,
        url: str | None = None,
    ) -> Workflow | None:
        """Coalesce provided fields onto the stored row; None when the id is unknown.

        Empty strings count as "not provided", so a field can never be cleared here.
        """
        with self._connect("Error updating workflow") as conn:
            current = conn.execute(
                "SELECT modified_at FROM workflows WHERE id = ?",
                (workflow_id,),
            ).fetchone()
            if current is None:
                return None
            modified_at = next_modified_at(self._parse_datetime(current["modified_at"]))
            conn.execute(
                """
                UPDATE workflows
                SET name = COALESCE(?, name),
                    description = COALESCE(?, description),
                    url = COALESCE(?, url),
                    modified_at = ?
                WHERE id = ?
                """,
                (
                    name or None,
                    description or None,
                    url or None,
                    modified_at.isoformat(),
                    workflow_id,
                ),
            )
            row = conn.execute(
                "SELECT * FROM workflows WHERE id = ?",
                (workflow_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_workflow(row)

    def delete(self, workflow_id: int) -> bool:
        with self._connect("Error deleting workflow") as conn:
            cursor = conn.execute("DELETE FROM workflows WHERE id = ?", (workflow_id,))
        return cursor.rowcount > 0

    @contextmanager
    def _connect(self, failure_message: str) -> Iterator[sqlite3.Connection]:
        """Open a connection under the lock, commit on success, always close.

        Engine errors surface as StorageError carrying ``failure_message``.
        """
        with self._lock:
            try:
                conn = sqlite3.connect(self.database_path)
            except sqlite3.Error as exc:
                raise StorageError(failure_message) from exc
            conn.row_factory = sqlite3.Row
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StorageError(failure_message) from exc
            finally:
                conn.close()

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime:
        """Parse datetime value from database driver output."""
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw)
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_workflow(cls, row: Any) -> Workflow:
        """Map one DB row to the canonical Workflow Pydantic model."""
        return Workflow(
            id=int(row["id"]),
            name=row["name"],
            description=row["description"],
            url=row["url"],
            created_at=cls._parse_datetime(row["created_at"]),
            modified_at=cls._parse_datetime(row["modified_at"]),
        )


class InMemoryWorkflowStorage:
    """Simple in-memory implementation for tests and throwaway runs."""

    def __init__(self) -> None:
        self._workflows: dict[int, Workflow] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def migrate(self) -> None:
        return None

    def create(self, name: str | None, description: str | None, url: str | None) -> Workflow:
        validate_new_workflow(name, description, url)
        now = next_modified_at()
        with self._lock:
            record = Workflow(
                id=self._next_id,
                name=name,
                description=description,
                url=url,
                created_at=now,
                modified_at=now,
            )
            self._workflows[record.id] = record
            self._next_id += 1
        return record.model_copy()

    def get(self, workflow_id: int) -> Workflow | None:
        record = self._workflows.get(workflow_id)
        return record.model_copy() if record else None

    def list(self) -> list[Workflow]:
        with self._lock:
            return [self._workflows[key].model_copy() for key in sorted(self._workflows)]

    def update(
        self,
        workflow_id: int,
        *,
        name: str | None = None,
        description: str | None = None,
        url: str | None = None,
    ) -> Workflow | None:
        with self._lock:
            current = self._workflows.get(workflow_id)
            if current is None:
                return None
            updated = current.model_copy(
                update={
                    "name": name or current.name,
                    "description": description or current.description,
                    "url": url or current.url,
                    "modified_at": next_modified_at(current.modified_at),
                }
            )
            self._workflows[workflow_id] = updated
        return updated.model_copy()

    def delete(self, workflow_id: int) -> bool:
        with self._lock:
            return self._workflows.pop(workflow_id, None) is not None
