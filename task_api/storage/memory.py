"""In-memory task store."""

import logging
from threading import Lock
from typing import Dict, List, Optional

from ..models.task import Task, TaskPatch, TaskStatus, utcnow
from .base import clean_title

logger = logging.getLogger(__name__)


def _newest_first(tasks: List[Task]) -> List[Task]:
    return sorted(tasks, key=lambda t: (t.created_at, t.id), reverse=True)


class MemoryTaskStore:
    """Task store backed by a dict; state lives as long as the process."""

    name = "memory"

    def __init__(self):
        """Initialize the in-memory store."""
        self._tasks: Dict[int, Task] = {}
        self._next_id = 1
        self._lock = Lock()  # Serializes every read and mutation
        logger.info("Task store initialized with in-memory storage")

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def list_all(self) -> List[Task]:
        with self._lock:
            tasks = _newest_first([t.model_copy() for t in self._tasks.values()])
            logger.debug(f"Listed {len(tasks)} tasks")
            return tasks

    async def get_by_id(self, task_id: int) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                logger.debug(f"Task {task_id} not found")
                return None
            return task.model_copy()

    async def list_by_status(self, status: TaskStatus) -> List[Task]:
        with self._lock:
            tasks = [t.model_copy() for t in self._tasks.values() if t.status == status]
            logger.debug(f"Listed {len(tasks)} tasks with status={status.value}")
            return _newest_first(tasks)

    async def create(self, title: str, description: str = "", status: TaskStatus = TaskStatus.PENDING) -> Task:
        """Create a new task.

        Raises:
            ValueError: If title is empty or whitespace
        """
        title = clean_title(title)

        with self._lock:
            now = utcnow()
            task = Task(
                id=self._next_id,
                title=title,
                description=description or "",
                status=status,
                created_at=now,
                updated_at=now,
            )
            self._next_id += 1
            self._tasks[task.id] = task

            logger.info(f"Created task {task.id}: {task.title}")
            return task.model_copy()

    async def update(self, task_id: int, patch: TaskPatch) -> Optional[Task]:
        """Apply the supplied patch fields to a task.

        Returns:
            Updated task if found, None otherwise

        Raises:
            ValueError: If the patch carries a blank title
        """
        if patch.title is not None:
            clean_title(patch.title)

        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                logger.warning(f"Task {task_id} not found for update")
                return None

            changes = patch.changes()
            if "title" in changes:
                task.title = changes["title"]
            if "description" in changes:
                task.description = changes["description"]
            if patch.status is not None:
                task.status = patch.status

            task.update_timestamp()

            logger.info(f"Updated task {task_id}: {sorted(changes)}")
            return task.model_copy()

    async def delete(self, task_id: int) -> bool:
        with self._lock:
            task = self._tasks.pop(task_id, None)
            if task is None:
                logger.warning(f"Task {task_id} not found for deletion")
                return False
            logger.info(f"Deleted task {task_id}: {task.title}")
            return True

    async def count(self) -> int:
        with self._lock:
            return len(self._tasks)
