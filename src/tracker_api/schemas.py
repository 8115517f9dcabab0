from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    Blank text is rejected by the store, so only the type is checked here.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"text": "Buy milk"}})

    text: str = Field(..., description="Task description; surrounding whitespace is trimmed")


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for a partial update of a Todo item.
    Only provided fields are applied. Any client-sent completedAt is ignored:
    completion timestamps are assigned by the server.
    """

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={"example": {"text": "Buy oat milk", "completed": True}},
    )

    text: Optional[str] = Field(default=None, description="New task description")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")


# PUBLIC_INTERFACE
class TodoOut(_CamelModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": 12,
                "userId": 3,
                "text": "Buy milk",
                "completed": True,
                "completedAt": "2025-01-26T09:00:00.000001Z",
                "createdAt": "2025-01-25T10:15:30.123456Z",
            }
        },
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    user_id: int = Field(..., description="Identifier of the owning user")
    text: str = Field(..., description="Task description")
    completed: bool = Field(..., description="Completion status flag")
    completed_at: Optional[datetime] = Field(default=None, description="Completion timestamp (UTC)")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")


# PUBLIC_INTERFACE
class HistoryItem(_CamelModel):
    """A completed todo as listed inside a history bucket."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"example": {"id": 12, "text": "Buy milk", "completedAt": "2025-01-26T09:00:00.000001Z"}},
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    text: str = Field(..., description="Task description")
    completed_at: datetime = Field(..., description="Completion timestamp (UTC)")


# PUBLIC_INTERFACE
class HistoryBucket(BaseModel):
    """Completed todos sharing one calendar day."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "date": "2025-01-26",
                "todos": [{"id": 12, "text": "Buy milk", "completedAt": "2025-01-26T09:00:00.000001Z"}],
                "count": 1,
            }
        }
    )

    date: str = Field(..., description="Calendar day in the history timezone, YYYY-MM-DD")
    todos: List[HistoryItem] = Field(..., description="Todos completed that day, latest completion first")
    count: int = Field(..., description="Number of todos in the bucket")


# PUBLIC_INTERFACE
class RegisterRequest(BaseModel):
    """
    Schema for registering a new account.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"name": "Ada Lovelace", "email": "ada@example.com", "password": "analytical"}
        }
    )

    name: str = Field(..., max_length=100, description="Display name")
    email: EmailStr = Field(..., description="Login email; unique, case-insensitive")
    password: str = Field(..., max_length=200, description="Password, at least 6 characters")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


# PUBLIC_INTERFACE
class LoginRequest(BaseModel):
    """Credentials exchanged for a bearer token."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"email": "ada@example.com", "password": "analytical"}}
    )

    email: EmailStr = Field(..., description="Registered email, matched case-insensitively")
    password: str = Field(..., description="Account password")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


# PUBLIC_INTERFACE
class UserOut(_CamelModel):
    """Public profile fields of a user. The password hash is never part of this schema."""

    id: int = Field(..., description="Unique identifier of the user")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Login email")
    created_at: datetime = Field(..., description="Registration timestamp (UTC)")


# PUBLIC_INTERFACE
class AuthResponse(BaseModel):
    token: str = Field(..., description="Opaque bearer token for the Authorization header")
    user: UserOut


# PUBLIC_INTERFACE
class Stats(_CamelModel):
    """Todo counts for one user."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"example": {"totalTodos": 3, "completedTodos": 1, "pendingTodos": 2}},
    )

    total_todos: int = Field(..., description="All of the user's todos")
    completed_todos: int = Field(..., description="Todos marked completed")
    pending_todos: int = Field(..., description="Todos not yet completed")


# PUBLIC_INTERFACE
class ProfileOut(BaseModel):
    """The caller's public profile together with their todo counts."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "user": {"id": 3, "name": "Ada Lovelace", "email": "ada@example.com", "createdAt": "2025-01-20T08:00:00Z"},
                "stats": {"totalTodos": 3, "completedTodos": 1, "pendingTodos": 2},
            }
        }
    )

    user: UserOut = Field(..., description="Public profile of the caller")
    stats: Stats = Field(..., description="Counts of the caller's todos")
