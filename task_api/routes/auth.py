"""
Auth API routes: register, login, profile, token verification.

Route prefix: /api/auth
"""

import logging

from fastapi import APIRouter, Depends, Request, status

from ..deps import get_app_settings, get_auth_service, require_auth
from ..errors import NotFoundError
from ..models.user import TokenClaims
from ..schemas import (
    ClaimsData,
    ClaimsEnvelope,
    DemoCredentials,
    DemoCredentialsEnvelope,
    LoginEnvelope,
    LoginRequest,
    RegisterRequest,
    UserEnvelope,
)
from ..services.auth_service import DEMO_USERS, AuthService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post(
    "/register",
    response_model=UserEnvelope,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    req: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> dict:
    """Register a new user."""
    user = await auth_service.register(req.username, req.password, req.email)

    return {"success": True, "message": "User registered successfully", "data": user}


@router.post("/login", response_model=LoginEnvelope, response_model_exclude_none=True)
async def login(
    req: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> dict:
    """Login with username + password and receive a bearer token."""
    auth_data = await auth_service.login(req.username, req.password)

    return {"success": True, "message": "Login successful", "data": auth_data}


@router.get("/profile", response_model=UserEnvelope, response_model_exclude_none=True)
async def profile(
    claims: TokenClaims = Depends(require_auth),
    auth_service: AuthService = Depends(get_auth_service),
) -> dict:
    """Profile of the authenticated user."""
    user = auth_service.get_profile(claims.username)
    if user is None:
        raise NotFoundError("User profile not found", "PROFILE_NOT_FOUND")

    return {"success": True, "message": "Profile retrieved successfully", "data": user}


@router.post("/verify", response_model=ClaimsEnvelope, response_model_exclude_none=True)
async def verify(claims: TokenClaims = Depends(require_auth)) -> ClaimsEnvelope:
    """Confirm that the bearer token is valid and return its claims."""
    return ClaimsEnvelope(
        message="Token is valid",
        data=ClaimsData(
            user_id=claims.user_id,
            username=claims.username,
            iat=claims.iat,
            exp=claims.exp,
        ),
    )


@router.get("/demo-credentials", response_model=DemoCredentialsEnvelope, response_model_exclude_none=True)
async def demo_credentials(request: Request) -> DemoCredentialsEnvelope:
    """Demo accounts for trying the API; only available when they were seeded."""
    if not get_app_settings(request).seed_demo_users:
        raise NotFoundError(f"Route {request.url.path} not found", "NOT_FOUND")

    return DemoCredentialsEnvelope(
        message="Demo credentials for testing",
        data=DemoCredentials(
            users=DEMO_USERS,
            note="Use these credentials to test the authentication system",
            endpoints={
                "login": "POST /api/auth/login",
                "register": "POST /api/auth/register",
                "profile": "GET /api/auth/profile",
                "verify": "POST /api/auth/verify",
            },
        ),
    )
