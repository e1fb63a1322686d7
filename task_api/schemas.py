"""API request/response schemas for the task management system.

Every response uses the same envelope: ``success`` plus optional
``message``, ``error``, ``data`` and ``count``. Routes serialize with
``response_model_exclude_none`` so unused keys are omitted.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models.task import TaskStatus


# Task-related schemas
class TaskCreate(BaseModel):
    """Schema for creating a new task.

    Title and status are checked by the service so that a missing title or
    an unknown status produce the API's own 400 messages.
    """
    title: Optional[str] = Field(None, description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    status: Optional[str] = Field(None, description="pending, in-progress or completed")


class TaskUpdate(BaseModel):
    """Schema for updating an existing task; omitted fields stay unchanged."""
    title: Optional[str] = Field(None, description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    status: Optional[str] = Field(None, description="Task status")


class TaskResponse(BaseModel):
    """Schema for a task in API responses."""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Unique task identifier")
    title: str = Field(..., description="Task title")
    description: str = Field("", description="Task description")
    status: TaskStatus = Field(..., description="Task status")
    created_at: datetime = Field(..., description="Task creation timestamp")
    updated_at: datetime = Field(..., description="Task last update timestamp")


class Envelope(BaseModel):
    """Fields shared by every response body."""
    success: bool = Field(True, description="Whether the request succeeded")
    message: Optional[str] = Field(None, description="Human-readable status message")
    error: Optional[str] = Field(None, description="Machine-readable error code")


class TaskEnvelope(Envelope):
    data: TaskResponse


class TaskListEnvelope(Envelope):
    count: int = Field(..., description="Number of tasks in data")
    data: List[TaskResponse]


class ExportEnvelope(Envelope):
    """JSON export body."""
    export_date: datetime = Field(..., alias="exportDate")
    format: str
    count: int
    data: List[TaskResponse]

    model_config = ConfigDict(populate_by_name=True)


# Auth-related schemas
class RegisterRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    email: Optional[str] = None


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class UserPublic(BaseModel):
    """Public user profile; never includes the password hash."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str
    email: str
    created_at: datetime = Field(..., alias="createdAt")
    is_active: Optional[bool] = Field(None, alias="isActive")


class UserEnvelope(Envelope):
    data: UserPublic


class LoginData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user: UserPublic
    token: str
    expires_in: str = Field(..., alias="expiresIn")


class LoginEnvelope(Envelope):
    data: LoginData


class ClaimsData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    username: str
    iat: int
    exp: int


class ClaimsEnvelope(Envelope):
    data: ClaimsData


class DemoUser(BaseModel):
    username: str
    password: str
    email: str
    role: str


class DemoCredentials(BaseModel):
    users: List[DemoUser]
    note: str
    endpoints: dict


class DemoCredentialsEnvelope(Envelope):
    data: DemoCredentials


# Health check schema
class HealthResponse(BaseModel):
    """Schema for health check responses."""
    status: str = Field(default="OK", description="Service health status")
    message: str = Field(..., description="Human-readable status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Deployment environment")
    storage: str = Field(..., description="Active task store backend")
    uptime: float = Field(..., description="Seconds since startup")
