"""Task service: request validation and error mapping over a TaskStore."""

import csv
import io
import logging
import re
from typing import Any, Dict, List, Optional

from ..errors import InternalError, NotFoundError, TaskAPIError, ValidationError
from ..models.task import INVALID_STATUS_MESSAGE, Task, TaskPatch, TaskStatus
from ..storage.base import TaskStore

logger = logging.getLogger(__name__)

TASK_NOT_FOUND = "Task not found"
MAX_TASK_ID = 2**63 - 1  # largest BIGINT / SQLite INTEGER
_TASK_ID_PATTERN = re.compile(r"[0-9]+")
EXPORT_FORMATS = ("json", "csv")
CSV_COLUMNS = ["id", "title", "description", "status", "created_at", "updated_at"]

SAMPLE_TASKS = [
    {
        "title": "Set up the Task Management API",
        "description": "Configure storage and authentication for the service",
        "status": TaskStatus.IN_PROGRESS,
    },
    {
        "title": "Learn FastAPI",
        "description": "Master routing, dependencies and REST API development",
        "status": TaskStatus.COMPLETED,
    },
    {
        "title": "API Testing",
        "description": "Test all CRUD endpoints with curl commands",
        "status": TaskStatus.PENDING,
    },
]


def parse_task_id(raw_id: Any) -> Optional[int]:
    """Parse a path segment into a task id.

    Only plain ASCII digits within the signed 64-bit range are ids. Anything
    else yields None, which callers treat as a lookup miss rather than a
    validation error.
    """
    if isinstance(raw_id, bool):
        return None
    if isinstance(raw_id, int):
        task_id = raw_id
    elif isinstance(raw_id, str) and _TASK_ID_PATTERN.fullmatch(raw_id):
        task_id = int(raw_id)
    else:
        return None

    if not 1 <= task_id <= MAX_TASK_ID:
        return None
    return task_id


def parse_status(raw_status: Any) -> TaskStatus:
    """Validate a status value against the enum.

    Raises:
        ValidationError: If the value is not a known status
    """
    task_status = TaskStatus.parse(raw_status)
    if task_status is None:
        raise ValidationError(INVALID_STATUS_MESSAGE, "INVALID_STATUS")
    return task_status


class TaskService:
    """Service for task CRUD operations over a pluggable store."""

    def __init__(self, store: TaskStore):
        """Initialize the task service.

        Args:
            store: Backing task store
        """
        self.store = store
        logger.info(f"Task service initialized with {store.name} storage")

    async def _call_store(self, failure_message: str, operation, *args):
        """Run a store operation, mapping storage faults to InternalError."""
        try:
            return await operation(*args)
        except TaskAPIError:
            raise
        except ValueError as e:
            raise ValidationError(str(e)) from e
        except Exception as e:
            logger.error(f"{failure_message}: {str(e)}", exc_info=True)
            raise InternalError(failure_message, detail=str(e)) from e

    async def list_tasks(self) -> List[Task]:
        """List every task, newest first."""
        return await self._call_store("Failed to fetch tasks", self.store.list_all)

    async def get_task(self, raw_id: Any) -> Task:
        """Get a task by ID.

        Args:
            raw_id: Task ID as received in the request path

        Returns:
            The task

        Raises:
            NotFoundError: If the ID is malformed or unknown
        """
        task_id = parse_task_id(raw_id)
        task = None
        if task_id is not None:
            task = await self._call_store("Failed to fetch task", self.store.get_by_id, task_id)

        if task is None:
            logger.debug(f"Task {raw_id} not found")
            raise NotFoundError(TASK_NOT_FOUND, "TASK_NOT_FOUND")
        return task

    async def list_tasks_by_status(self, raw_status: Any) -> List[Task]:
        """List tasks whose status equals ``raw_status``.

        Raises:
            ValidationError: If ``raw_status`` is not a known status
        """
        task_status = parse_status(raw_status)
        return await self._call_store(
            "Failed to fetch tasks by status", self.store.list_by_status, task_status
        )

    async def create_task(
        self,
        title: Optional[str],
        description: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Task:
        """Create a new task.

        Args:
            title: Task title, required and non-blank
            description: Optional task description
            status: Optional status, defaults to pending

        Returns:
            Created task

        Raises:
            ValidationError: If title is missing or status is invalid
        """
        if not title or not title.strip():
            raise ValidationError("Title is required", "TITLE_REQUIRED")

        task_status = TaskStatus.PENDING if status is None else parse_status(status)

        task = await self._call_store(
            "Failed to create task",
            self.store.create,
            title.strip(),
            description or "",
            task_status,
        )
        logger.debug(f"Created task {task.id}: {task.title}")
        return task

    async def update_task(
        self,
        raw_id: Any,
        title: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Task:
        """Apply a partial update; only the supplied fields change.

        Raises:
            NotFoundError: If the task does not exist
            ValidationError: If the patch is empty or carries invalid values
        """
        await self.get_task(raw_id)
        task_id = parse_task_id(raw_id)

        if status is not None:
            parse_status(status)

        if title is not None and not title.strip():
            raise ValidationError("Title cannot be empty", "TITLE_EMPTY")

        patch = TaskPatch(title=title, description=description, status=status)
        if patch.is_empty():
            raise ValidationError("No valid fields to update", "EMPTY_UPDATE")

        task = await self._call_store("Failed to update task", self.store.update, task_id, patch)
        if task is None:
            # Deleted between the existence check and the update
            raise NotFoundError(TASK_NOT_FOUND, "TASK_NOT_FOUND")

        logger.debug(f"Updated task {task_id}: {sorted(patch.changes())}")
        return task

    async def delete_task(self, raw_id: Any) -> None:
        """Delete a task.

        Raises:
            NotFoundError: If the task does not exist
        """
        task_id = parse_task_id(raw_id)
        deleted = False
        if task_id is not None:
            deleted = await self._call_store("Failed to delete task", self.store.delete, task_id)

        if not deleted:
            raise NotFoundError(TASK_NOT_FOUND, "TASK_NOT_FOUND")
        logger.debug(f"Deleted task {task_id}")

    async def count_tasks(self) -> int:
        return await self._call_store("Failed to count tasks", self.store.count)

    async def export_tasks(self, fmt: str) -> Dict[str, Any]:
        """Export all tasks as JSON-ready records or CSV text.

        Args:
            fmt: ``json`` or ``csv`` (case-insensitive)

        Returns:
            Dict with ``format``, ``count`` and ``content`` (list for JSON,
            string for CSV)

        Raises:
            ValidationError: If the format is not supported
        """
        fmt = (fmt or "").lower()
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(
                f"Unsupported format. Supported formats: {', '.join(EXPORT_FORMATS)}",
                "INVALID_FORMAT",
            )

        tasks = await self._call_store("Export failed", self.store.list_all)
        records = [task.model_dump(mode="json") for task in tasks]

        if fmt == "json":
            return {"format": fmt, "count": len(records), "content": records}

        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        writer.writerows(records)
        return {"format": fmt, "count": len(records), "content": buffer.getvalue()}

    async def seed_sample_tasks(self) -> int:
        """Insert the sample tasks when the store is empty.

        Returns:
            Number of tasks inserted
        """
        if await self.count_tasks() > 0:
            logger.info("Task store not empty, skipping sample data")
            return 0

        for sample in SAMPLE_TASKS:
            await self.store.create(sample["title"], sample["description"], sample["status"])

        logger.info(f"Inserted {len(SAMPLE_TASKS)} sample tasks")
        return len(SAMPLE_TASKS)
