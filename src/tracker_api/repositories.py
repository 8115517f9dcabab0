from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from threading import RLock
from typing import Dict, List, Optional, Tuple

from fastapi import Request

from .completion import apply_update, normalize_text
from .errors import NotFound, ValidationError
from .models import SessionEntity, TodoEntity, UserEntity
from .schemas import TodoCreate, TodoUpdate
from .settings import Settings
from .utils import Clock, MonotonicClock

logger = logging.getLogger(__name__)

TODO_NOT_FOUND = "Todo not found"


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract repository contract for todo storage backends.

    Every operation is scoped by the owning user's id. A todo that exists but
    belongs to someone else is reported exactly like a missing one (NotFound).
    """

    @abstractmethod
    def create(self, user_id: int, data: TodoCreate) -> TodoEntity:
        """Create and return a new pending TodoEntity. Raises ValidationError on blank text."""

    @abstractmethod
    def list(self, user_id: int) -> List[TodoEntity]:
        """Return all of the owner's todos, newest first."""

    @abstractmethod
    def get(self, user_id: int, todo_id: int) -> TodoEntity:
        """Return the owner's TodoEntity by id. Raises NotFound."""

    @abstractmethod
    def update(self, user_id: int, todo_id: int, data: TodoUpdate) -> TodoEntity:
        """
        Apply a partial update as one atomic read-modify-write and return the result.
        Completion stamps are assigned here, never taken from the client.
        Raises NotFound or ValidationError.
        """

    @abstractmethod
    def delete(self, user_id: int, todo_id: int) -> None:
        """Delete the owner's TodoEntity by id. Raises NotFound."""

    @abstractmethod
    def list_completed(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[TodoEntity]:
        """
        Return the owner's completed todos with completed_at in [start, end]
        (either bound optional), ordered by completed_at descending.
        """

    @abstractmethod
    def stats(self, user_id: int) -> Tuple[int, int]:
        """Return (total, completed) counts for the owner's todos."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time from the clock that stamps this store's records."""


# PUBLIC_INTERFACE
class UserRepository(ABC):
    """Abstract storage contract for user accounts and bearer-token sessions."""

    @abstractmethod
    def create_user(self, name: str, email: str, password_hash: str) -> UserEntity:
        """Create a user. Raises ValidationError if the email is already registered."""

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[UserEntity]:
        """Return a user by id, or None."""

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[UserEntity]:
        """Return a user by (lowercased) email, or None."""

    @abstractmethod
    def create_session(self, token: str, user_id: int) -> SessionEntity:
        """Persist a new session for the token."""

    @abstractmethod
    def get_session(self, token: str) -> Optional[SessionEntity]:
        """Return the session for a token, or None."""

    @abstractmethod
    def delete_session(self, token: str) -> None:
        """Remove a session; unknown tokens are ignored."""


def _sort_newest_first(items: List[TodoEntity]) -> List[TodoEntity]:
    return sorted(items, key=lambda t: (t["created_at"], t["id"]), reverse=True)


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._lock = RLock()
        self._items: Dict[int, TodoEntity] = {}
        self._next_id = 1
        self._clock = clock or MonotonicClock()

    def now(self) -> datetime:
        return self._clock()

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def _owned(self, user_id: int, todo_id: int) -> TodoEntity:
        item = self._items.get(todo_id)
        if item is None or item["user_id"] != user_id:
            raise NotFound(TODO_NOT_FOUND)
        return item

    def create(self, user_id: int, data: TodoCreate) -> TodoEntity:
        text = normalize_text(data.text)
        with self._lock:
            entity: TodoEntity = {
                "id": self._allocate_id(),
                "user_id": user_id,
                "text": text,
                "completed": False,
                "completed_at": None,
                "created_at": self.now(),
            }
            self._items[entity["id"]] = entity
            return entity.copy()

    def list(self, user_id: int) -> List[TodoEntity]:
        with self._lock:
            mine = [t.copy() for t in self._items.values() if t["user_id"] == user_id]
        return _sort_newest_first(mine)

    def get(self, user_id: int, todo_id: int) -> TodoEntity:
        with self._lock:
            return self._owned(user_id, todo_id).copy()

    def update(self, user_id: int, todo_id: int, data: TodoUpdate) -> TodoEntity:
        with self._lock:
            existing = self._owned(user_id, todo_id)
            updated = apply_update(existing, data, self.now())
            self._items[todo_id] = updated
            return updated.copy()

    def delete(self, user_id: int, todo_id: int) -> None:
        with self._lock:
            self._owned(user_id, todo_id)
            del self._items[todo_id]

    def list_completed(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[TodoEntity]:
        with self._lock:
            done = [
                t.copy()
                for t in self._items.values()
                if t["user_id"] == user_id and t["completed"] and t["completed_at"] is not None
            ]
        if start is not None:
            done = [t for t in done if t["completed_at"] >= start]  # type: ignore[operator]
        if end is not None:
            done = [t for t in done if t["completed_at"] <= end]  # type: ignore[operator]
        return sorted(done, key=lambda t: (t["completed_at"], t["id"]), reverse=True)

    def stats(self, user_id: int) -> Tuple[int, int]:
        total = completed = 0
        with self._lock:
            for t in self._items.values():
                if t["user_id"] == user_id:
                    total += 1
                    completed += 1 if t["completed"] else 0
        return total, completed


class InMemoryUserRepository(UserRepository):
    """
    Thread-safe in-memory user and session storage.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._lock = RLock()
        self._users: Dict[int, UserEntity] = {}
        self._by_email: Dict[str, int] = {}
        self._sessions: Dict[str, SessionEntity] = {}
        self._next_id = 1
        self._clock = clock or MonotonicClock()

    def create_user(self, name: str, email: str, password_hash: str) -> UserEntity:
        with self._lock:
            if email in self._by_email:
                raise ValidationError("Email already registered")
            user: UserEntity = {
                "id": self._next_id,
                "name": name,
                "email": email,
                "password_hash": password_hash,
                "created_at": self._clock(),
            }
            self._next_id += 1
            self._users[user["id"]] = user
            self._by_email[email] = user["id"]
            return user.copy()

    def get_user(self, user_id: int) -> Optional[UserEntity]:
        with self._lock:
            user = self._users.get(user_id)
            return None if user is None else user.copy()

    def get_user_by_email(self, email: str) -> Optional[UserEntity]:
        with self._lock:
            user_id = self._by_email.get(email)
            return None if user_id is None else self._users[user_id].copy()

    def create_session(self, token: str, user_id: int) -> SessionEntity:
        session: SessionEntity = {"token": token, "user_id": user_id, "created_at": self._clock()}
        with self._lock:
            self._sessions[token] = session
        return session.copy()

    def get_session(self, token: str) -> Optional[SessionEntity]:
        with self._lock:
            session = self._sessions.get(token)
            return None if session is None else session.copy()

    def delete_session(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)


# PUBLIC_INTERFACE
def build_repositories(settings: Settings, clock: Optional[Clock] = None) -> Tuple[Repository, UserRepository]:
    """
    Return the (todo, user) repositories for the configured backend.
    - memory: InMemoryRepository / InMemoryUserRepository
    - sqlite: SQLiteRepository / SQLiteUserRepository sharing one database file
    """
    if clock is not None:
        # Each store keeps its own strictly increasing view of the injected source
        todo_clock, user_clock = MonotonicClock(clock), MonotonicClock(clock)
    else:
        todo_clock = user_clock = None

    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository, SQLiteUserRepository

        logger.info("Using sqlite persistence at %s", settings.sqlite_db_path)
        return (
            SQLiteRepository(settings.sqlite_db_path, clock=todo_clock),
            SQLiteUserRepository(settings.sqlite_db_path, clock=user_clock),
        )
    logger.info("Using in-memory persistence")
    return InMemoryRepository(clock=todo_clock), InMemoryUserRepository(clock=user_clock)


# PUBLIC_INTERFACE
def get_repository(request: Request) -> Repository:
    """FastAPI dependency returning the todo repository configured on the running app."""
    return request.app.state.repository
