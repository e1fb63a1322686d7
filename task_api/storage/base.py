"""Task store interface and backend selection."""

import logging
from typing import TYPE_CHECKING, List, Optional, Protocol

from ..models.task import Task, TaskPatch, TaskStatus

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

EMPTY_TITLE_MESSAGE = "Task title cannot be empty"


class TaskStore(Protocol):
    """Mapping from integer id to Task record.

    Implementations order listings newest-first by ``created_at`` and never
    reuse an id after deletion. Callers validate status values and patch
    contents before reaching the store.
    """

    name: str

    async def initialize(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def list_all(self) -> List[Task]:
        ...

    async def get_by_id(self, task_id: int) -> Optional[Task]:
        ...

    async def list_by_status(self, status: TaskStatus) -> List[Task]:
        ...

    async def create(self, title: str, description: str = "", status: TaskStatus = TaskStatus.PENDING) -> Task:
        ...

    async def update(self, task_id: int, patch: TaskPatch) -> Optional[Task]:
        ...

    async def delete(self, task_id: int) -> bool:
        ...

    async def count(self) -> int:
        ...


def clean_title(title: Optional[str]) -> str:
    """Strip a title, raising ValueError when nothing is left."""
    if not title or not title.strip():
        raise ValueError(EMPTY_TITLE_MESSAGE)
    return title.strip()


def create_task_store(settings: "Settings") -> TaskStore:
    """Build the task store selected by ``settings.storage_backend``.

    Args:
        settings: Application settings

    Returns:
        Uninitialized task store; call ``initialize()`` before use
    """
    backend = settings.storage_backend
    logger.info(f"Selecting task store backend: {backend}")

    if backend == "memory":
        from .memory import MemoryTaskStore
        return MemoryTaskStore()

    if backend == "sqlite":
        from .sqlite import SqliteTaskStore
        return SqliteTaskStore(settings.sqlite_path)

    if backend == "database":
        from .database import DatabaseTaskStore
        return DatabaseTaskStore(settings.database_url)

    raise ValueError(f"Unknown storage backend: {backend}")
