"""SQLite task store using aiosqlite.

All statements go through one connection, and every write plus its
read-back runs under ``_write_lock``, so mutations on the same row are
applied one at a time.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

import aiosqlite

from ..models.task import Task, TaskPatch, TaskStatus, utcnow
from .base import clean_title

logger = logging.getLogger(__name__)

_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    title       TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    status      TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending', 'in-progress', 'completed')),
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at DESC);",
]

_ORDER_BY = "ORDER BY created_at DESC, id DESC"

# Fixed width keeps lexical order equal to chronological order
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


def _format_ts(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


def _parse_ts(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SqliteTaskStore:
    """Task store persisted to a single SQLite file."""

    name = "sqlite"

    def __init__(self, db_path: Union[str, Path] = "data/tasks.db"):
        self._db_path = Path(db_path)
        self._conn: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the connection and create the schema if missing."""
        if self._conn is not None:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self._db_path))
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL;")
        await self._conn.execute(_TASKS_DDL)
        for index_sql in _TASKS_INDEXES:
            await self._conn.execute(index_sql)
        await self._conn.commit()

        logger.info(f"SQLite task store ready at {self._db_path}")

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite task store closed")

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("SqliteTaskStore.initialize() has not been called")
        return self._conn

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        return Task(
            id=row["id"],
            title=row["title"],
            description=row["description"] or "",
            status=TaskStatus(row["status"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    async def _fetch_one(self, task_id: int) -> Optional[Task]:
        cursor = await self.conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
        row = await cursor.fetchone()
        await cursor.close()
        return self._row_to_task(row) if row is not None else None

    async def list_all(self) -> List[Task]:
        cursor = await self.conn.execute(f"SELECT * FROM tasks {_ORDER_BY}")
        rows = await cursor.fetchall()
        await cursor.close()
        return [self._row_to_task(row) for row in rows]

    async def get_by_id(self, task_id: int) -> Optional[Task]:
        return await self._fetch_one(task_id)

    async def list_by_status(self, status: TaskStatus) -> List[Task]:
        cursor = await self.conn.execute(
            f"SELECT * FROM tasks WHERE status = ? {_ORDER_BY}",
            (status.value,),
        )
        rows = await cursor.fetchall()
        await cursor.close()
        return [self._row_to_task(row) for row in rows]

    async def create(self, title: str, description: str = "", status: TaskStatus = TaskStatus.PENDING) -> Task:
        title = clean_title(title)
        now = _format_ts(utcnow())

        async with self._write_lock:
            cursor = await self.conn.execute(
                """
                INSERT INTO tasks (title, description, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (title, description or "", status.value, now, now),
            )
            task_id = cursor.lastrowid
            await cursor.close()
            await self.conn.commit()

            task = await self._fetch_one(task_id)

        logger.info(f"Created task {task_id}: {title}")
        return task

    async def update(self, task_id: int, patch: TaskPatch) -> Optional[Task]:
        if patch.title is not None:
            clean_title(patch.title)

        changes = patch.changes()
        changes["updated_at"] = _format_ts(utcnow())
        # Column names come from TaskPatch.changes(), never from the client
        assignments = ", ".join(f"{column} = ?" for column in changes)

        async with self._write_lock:
            cursor = await self.conn.execute(
                f"UPDATE tasks SET {assignments} WHERE id = ?",
                (*changes.values(), task_id),
            )
            updated = cursor.rowcount
            await cursor.close()
            await self.conn.commit()

            if not updated:
                logger.warning(f"Task {task_id} not found for update")
                return None

            task = await self._fetch_one(task_id)

        logger.info(f"Updated task {task_id}: {sorted(patch.changes())}")
        return task

    async def delete(self, task_id: int) -> bool:
        async with self._write_lock:
            cursor = await self.conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            deleted = cursor.rowcount
            await cursor.close()
            await self.conn.commit()

        if not deleted:
            logger.warning(f"Task {task_id} not found for deletion")
            return False
        logger.info(f"Deleted task {task_id}")
        return True

    async def count(self) -> int:
        cursor = await self.conn.execute("SELECT COUNT(*) FROM tasks")
        row = await cursor.fetchone()
        await cursor.close()
        return row[0]
