"""User directory abstraction and its in-memory implementation."""

import logging
from threading import Lock
from typing import Dict, Optional, Protocol

from ..models.user import User

logger = logging.getLogger(__name__)


class UserRepository(Protocol):
    """Storage for registered users, keyed by username."""

    def add(self, user: User) -> User:
        """Insert a new user; raises KeyError if the username is taken."""
        ...

    def get_by_username(self, username: str) -> Optional[User]:
        ...

    def update(self, user: User) -> User:
        """Replace a stored user; raises KeyError if it does not exist."""
        ...


class InMemoryUserRepository:
    """User directory that lives for the lifetime of the process."""

    def __init__(self):
        self._users: Dict[str, User] = {}
        self._lock = Lock()

    def add(self, user: User) -> User:
        with self._lock:
            if user.username in self._users:
                raise KeyError(user.username)
            self._users[user.username] = user
            logger.debug(f"Stored user {user.username} ({user.id})")
            return user.model_copy()

    def get_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(username)
            return user.model_copy() if user is not None else None

    def update(self, user: User) -> User:
        with self._lock:
            if user.username not in self._users:
                raise KeyError(user.username)
            self._users[user.username] = user
            return user.model_copy()
