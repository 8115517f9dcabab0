from __future__ import annotations

from datetime import datetime
from typing import Optional, TypedDict


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A lightweight domain model representing a Todo item as held by the
    storage backends.

    Fields:
    - id: Unique integer identifier
    - user_id: Id of the owning user (never changes after creation)
    - text: Task description (trimmed, non-empty)
    - completed: Boolean completion flag
    - completed_at: UTC completion timestamp; set iff completed is True
    - created_at: UTC creation timestamp
    """

    id: int
    user_id: int
    text: str
    completed: bool
    completed_at: Optional[datetime]
    created_at: datetime


# PUBLIC_INTERFACE
class UserEntity(TypedDict):
    """
    A registered user. password_hash holds the encoded salted PBKDF2 digest
    and must never leave the service.
    """

    id: int
    name: str
    email: str
    password_hash: str
    created_at: datetime


class SessionEntity(TypedDict):
    token: str
    user_id: int
    created_at: datetime
