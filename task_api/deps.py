"""Dependency injection helpers for FastAPI."""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request, status

from .config import Settings, settings
from .errors import AuthError
from .models.user import TokenClaims
from .services.auth_service import AuthService
from .services.task_service import TaskService

logger = logging.getLogger(__name__)


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return settings


def get_app_settings(request: Request) -> Settings:
    """Settings the running application was created with."""
    return request.app.state.settings


def get_task_service(request: Request) -> TaskService:
    """Task service constructed at application startup."""
    return request.app.state.task_service


def get_auth_service(request: Request) -> AuthService:
    """Auth service constructed at application startup."""
    return request.app.state.auth_service


def extract_bearer_token(request: Request) -> Optional[str]:
    """Return the token from ``Authorization: Bearer <token>``, if any."""
    header = request.headers.get("authorization")
    if not header:
        return None
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def require_auth(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenClaims:
    """Reject the request unless it carries a valid bearer token.

    Raises:
        AuthError: 401 MISSING_TOKEN without a token, 403 INVALID_TOKEN
            when the token is tampered or expired
    """
    token = extract_bearer_token(request)
    if not token:
        raise AuthError("Access token required", "MISSING_TOKEN")

    claims = auth_service.verify_token(token)
    if claims is None:
        logger.warning(f"Invalid token for {request.method} {request.url.path}")
        raise AuthError(
            "Invalid or expired token",
            "INVALID_TOKEN",
            status_code=status.HTTP_403_FORBIDDEN,
        )

    request.state.user = claims
    return claims


def optional_auth(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> Optional[TokenClaims]:
    """Attach the caller's identity when a valid token is present; never rejects."""
    claims = auth_service.verify_token(extract_bearer_token(request))
    request.state.user = claims
    return claims


def task_auth(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> Optional[TokenClaims]:
    """Auth policy for task routes, chosen by ``require_auth_for_tasks``."""
    if request.app.state.settings.require_auth_for_tasks:
        return require_auth(request, auth_service)
    return optional_auth(request, auth_service)
