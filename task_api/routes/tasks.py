"""Task management CRUD routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from ..deps import get_task_service, task_auth
from ..models.task import Task
from ..models.user import TokenClaims
from ..schemas import Envelope, TaskCreate, TaskEnvelope, TaskListEnvelope, TaskResponse, TaskUpdate
from ..services.task_service import TaskService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tasks"], dependencies=[Depends(task_auth)])


def _to_response(task: Task) -> TaskResponse:
    return TaskResponse.model_validate(task)


@router.get("", response_model=TaskListEnvelope, response_model_exclude_none=True)
async def list_tasks(
    task_service: TaskService = Depends(get_task_service),
) -> TaskListEnvelope:
    """List all tasks, newest first."""
    tasks = await task_service.list_tasks()
    logger.debug(f"Listing {len(tasks)} tasks")

    return TaskListEnvelope(count=len(tasks), data=[_to_response(task) for task in tasks])


@router.get("/status/{task_status}", response_model=TaskListEnvelope, response_model_exclude_none=True)
async def list_tasks_by_status(
    task_status: str,
    task_service: TaskService = Depends(get_task_service),
) -> TaskListEnvelope:
    """Filter tasks by status.

    Args:
        task_status: One of pending, in-progress, completed

    Raises:
        ValidationError: If the status is not recognised
    """
    tasks = await task_service.list_tasks_by_status(task_status)

    return TaskListEnvelope(count=len(tasks), data=[_to_response(task) for task in tasks])


@router.get("/{task_id}", response_model=TaskEnvelope, response_model_exclude_none=True)
async def get_task(
    task_id: str,
    task_service: TaskService = Depends(get_task_service),
) -> TaskEnvelope:
    """Get a specific task by ID.

    A non-numeric ID is reported as not found.
    """
    task = await task_service.get_task(task_id)

    return TaskEnvelope(data=_to_response(task))


@router.post(
    "",
    response_model=TaskEnvelope,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_task(
    task_data: TaskCreate,
    task_service: TaskService = Depends(get_task_service),
    user: Optional[TokenClaims] = Depends(task_auth),
) -> TaskEnvelope:
    """Create a new task.

    Args:
        task_data: Task creation data
        task_service: Task service instance
        user: Caller identity, when a valid token was sent

    Returns:
        Created task envelope
    """
    logger.info(
        f"Creating new task: {task_data.title!r}"
        + (f" (by {user.username})" if user else "")
    )

    task = await task_service.create_task(
        title=task_data.title,
        description=task_data.description,
        status=task_data.status,
    )

    return TaskEnvelope(message="Task created successfully", data=_to_response(task))


@router.put("/{task_id}", response_model=TaskEnvelope, response_model_exclude_none=True)
async def update_task(
    task_id: str,
    task_data: TaskUpdate,
    task_service: TaskService = Depends(get_task_service),
) -> TaskEnvelope:
    """Update a task; only the fields present in the body change."""
    logger.info(f"Updating task: {task_id}")

    task = await task_service.update_task(
        task_id,
        title=task_data.title,
        description=task_data.description,
        status=task_data.status,
    )

    return TaskEnvelope(message="Task updated successfully", data=_to_response(task))


@router.delete("/{task_id}", response_model=Envelope, response_model_exclude_none=True)
async def delete_task(
    task_id: str,
    task_service: TaskService = Depends(get_task_service),
) -> Envelope:
    """Delete a task."""
    logger.info(f"Deleting task: {task_id}")

    await task_service.delete_task(task_id)

    return Envelope(message="Task deleted successfully")
