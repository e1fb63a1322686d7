"""
Authentication service: registration, login and token verification.

Passwords are hashed with bcrypt (auto-salted). Access tokens are HS256
JWTs carrying ``userId``, ``username``, ``iat`` and ``exp``; there is no
server-side session, so a token stays valid until it expires.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Dict, List, Optional

import bcrypt
import jwt
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from ..config import Settings
from ..errors import AuthError, ConflictError, ValidationError
from ..models.user import TokenClaims, User
from .user_repository import UserRepository

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt ignores or rejects anything longer
INVALID_CREDENTIALS = "Invalid username or password"

DEMO_USERS: List[Dict[str, str]] = [
    {"username": "admin", "password": "admin123", "email": "admin@taskapi.com", "role": "Administrator"},
    {"username": "demo", "password": "demo123", "email": "demo@taskapi.com", "role": "User"},
]


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt (auto-salted)."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time comparison against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except (ValueError, TypeError):
        return False


def public_profile(user: User, include_status: bool = False) -> Dict[str, Any]:
    """User fields safe to return to clients (never the hash)."""
    profile = {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "createdAt": user.created_at,
    }
    if include_status:
        profile["isActive"] = user.is_active
    return profile


class AuthService:
    """Registers users and issues/verifies access tokens."""

    def __init__(self, repository: UserRepository, settings: Settings):
        self.repository = repository
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm
        self._expiry_hours = settings.jwt_expiry_hours
        self._bcrypt_rounds = settings.bcrypt_rounds

    @property
    def expires_in(self) -> str:
        return f"{self._expiry_hours}h"

    async def register(
        self,
        username: Optional[str],
        password: Optional[str],
        email: Optional[str],
    ) -> Dict[str, Any]:
        """Register a new user.

        Returns:
            Public profile of the new user

        Raises:
            ValidationError: On missing fields or malformed values
            ConflictError: If the username is already registered
        """
        if not username or not password or not email:
            raise ValidationError("Username, password, and email are required", "MISSING_FIELDS")

        if len(username) < MIN_USERNAME_LENGTH:
            raise ValidationError(
                f"Username must be at least {MIN_USERNAME_LENGTH} characters long",
                "INVALID_USERNAME",
            )

        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Please provide a valid email address", "INVALID_EMAIL")

        if self.repository.get_by_username(username) is not None:
            raise ConflictError("Username already exists", "USERNAME_EXISTS")

        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
                "INVALID_PASSWORD",
            )
        if len(password.encode()) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes long",
                "INVALID_PASSWORD",
            )

        password_hash = await run_in_threadpool(hash_password, password, self._bcrypt_rounds)
        user = User(username=username, email=email, password_hash=password_hash)

        try:
            user = self.repository.add(user)
        except KeyError:
            # Lost a race with a concurrent registration
            raise ConflictError("Username already exists", "USERNAME_EXISTS") from None

        logger.info(f"Registered user {user.username} ({user.id})")
        return public_profile(user)

    async def login(self, username: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        """Authenticate a user and issue a token.

        Unknown, inactive and wrong-password cases all raise the same error.

        Returns:
            ``{"user": profile, "token": jwt, "expiresIn": "24h"}``

        Raises:
            ValidationError: If a credential is missing
            AuthError: If the credentials are not valid
        """
        if not username or not password:
            raise ValidationError("Username and password are required", "MISSING_CREDENTIALS")

        user = self.repository.get_by_username(username)
        if user is None or not user.is_active:
            logger.warning(f"Login failed for {username}")
            raise AuthError(INVALID_CREDENTIALS)

        valid = await run_in_threadpool(verify_password, password, user.password_hash)
        if not valid:
            logger.warning(f"Login failed for {username}")
            raise AuthError(INVALID_CREDENTIALS)

        token = self.create_token(user)
        logger.info(f"Login: {user.username} ({user.id})")

        return {
            "user": public_profile(user),
            "token": token,
            "expiresIn": self.expires_in,
        }

    def create_token(self, user: User, issued_at: Optional[int] = None) -> str:
        """Create a signed token for ``user``."""
        iat = int(time.time()) if issued_at is None else issued_at
        payload = {
            "userId": user.id,
            "username": user.username,
            "iat": iat,
            "exp": iat + self._expiry_hours * 3600,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify_token(self, token: Optional[str]) -> Optional[TokenClaims]:
        """Decode a token.

        Returns:
            The claims, or None for a missing, tampered, malformed or
            expired token
        """
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat"]},
            )
            return TokenClaims.model_validate(payload)
        except (jwt.PyJWTError, PydanticValidationError) as e:
            logger.debug(f"Token rejected: {str(e)}")
            return None

    def get_profile(self, username: str) -> Optional[Dict[str, Any]]:
        """Profile of ``username`` including ``isActive``, or None."""
        user = self.repository.get_by_username(username)
        if user is None:
            return None
        return public_profile(user, include_status=True)

    async def seed_demo_users(self) -> int:
        """Register the demo accounts, skipping any that already exist.

        Returns:
            Number of users created
        """
        created = 0
        for demo in DEMO_USERS:
            try:
                await self.register(demo["username"], demo["password"], demo["email"])
                created += 1
            except ConflictError:
                logger.info(f"Demo user {demo['username']} already exists")

        logger.info(f"Demo users initialized ({created} created)")
        return created
