"""Error taxonomy shared by services and HTTP handlers."""

from typing import Optional

from fastapi import status


class TaskAPIError(Exception):
    """Base error rendered as a ``{success: false, ...}`` envelope."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        if status_code is not None:
            self.status_code = status_code


class ValidationError(TaskAPIError):
    """Malformed, missing or out-of-enum input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class NotFoundError(TaskAPIError):
    """Requested id or resource does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class ConflictError(TaskAPIError):
    """Unique key already taken."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class AuthError(TaskAPIError):
    """Bad credentials or a missing/invalid token (401 or 403)."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "AUTHENTICATION_FAILED"


class InternalError(TaskAPIError):
    """Storage failure or unexpected fault.

    ``detail`` keeps the underlying cause; it is only sent to clients in
    development mode.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail
