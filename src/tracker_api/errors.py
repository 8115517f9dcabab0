from __future__ import annotations

from typing import Dict, Optional


class AppError(Exception):
    """
    Base class for errors surfaced to API callers.

    Subclasses fix the HTTP status and the error name returned in the JSON body:
        {"error": "<name>", "message": "<message>"}
    """

    status_code: int = 500
    error: str = "InternalError"
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# PUBLIC_INTERFACE
class ValidationError(AppError):
    """Malformed or empty input."""

    status_code = 400
    error = "ValidationError"


# PUBLIC_INTERFACE
class NotFound(AppError):
    """No record exists under the caller's ownership."""

    status_code = 404
    error = "NotFound"


# PUBLIC_INTERFACE
class AuthError(AppError):
    """Missing, invalid, or expired credentials."""

    status_code = 401
    error = "AuthError"
    headers = {"WWW-Authenticate": "Bearer"}


# PUBLIC_INTERFACE
class InternalError(AppError):
    """Storage or other unexpected failure."""

    status_code = 500
    error = "InternalError"
