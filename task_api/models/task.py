"""Domain models for the task management system."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    """Task status enumeration."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    @classmethod
    def values(cls) -> list:
        """All accepted status strings in declaration order."""
        return [member.value for member in cls]

    @classmethod
    def parse(cls, value: Any) -> Optional["TaskStatus"]:
        """Return the matching status, or None when ``value`` is not one."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


INVALID_STATUS_MESSAGE = "Invalid status. Must be one of: " + ", ".join(TaskStatus.values())


class Task(BaseModel):
    """Task domain model."""

    id: int = Field(..., ge=1, description="Store-assigned task identifier")
    title: str = Field(..., min_length=1, description="Task title")
    description: str = Field(default="", description="Task description")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Task status")
    created_at: datetime = Field(default_factory=utcnow, description="Task creation timestamp")
    updated_at: datetime = Field(default_factory=utcnow, description="Task last update timestamp")

    def update_timestamp(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = utcnow()


class TaskPatch(BaseModel):
    """Fields to change on an existing task.

    ``None`` means "leave untouched", so a patch only ever carries the
    values the caller supplied.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None

    def changes(self) -> Dict[str, Any]:
        """Supplied fields as a column -> value mapping."""
        values = {}
        if self.title is not None:
            values["title"] = self.title.strip()
        if self.description is not None:
            values["description"] = self.description
        if self.status is not None:
            values["status"] = self.status.value
        return values

    def is_empty(self) -> bool:
        return not self.changes()
