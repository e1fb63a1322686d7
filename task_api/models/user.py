"""User and token models for the authentication subsystem."""

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from .task import utcnow


class User(BaseModel):
    """Registered account. Only the bcrypt hash of the password is kept."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Opaque user identifier")
    username: str = Field(..., min_length=3, description="Unique login name")
    email: str = Field(..., description="Contact email address")
    password_hash: str = Field(..., repr=False, description="bcrypt hash of the password")
    created_at: datetime = Field(default_factory=utcnow, description="Registration timestamp")
    is_active: bool = Field(default=True, description="Inactive users cannot log in")


class TokenClaims(BaseModel):
    """Decoded payload of an issued access token."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    username: str
    iat: int = Field(..., description="Issued-at, seconds since the epoch")
    exp: int = Field(..., description="Expiry, seconds since the epoch")
