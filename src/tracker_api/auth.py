from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta
from typing import Optional, Tuple

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import AuthError, ValidationError
from .models import UserEntity
from .repositories import UserRepository
from .utils import Clock, utcnow

logger = logging.getLogger(__name__)

_security = HTTPBearer(auto_error=False)

_HASH_ALGORITHM = "pbkdf2_sha256"
MIN_PASSWORD_LENGTH = 6


# PUBLIC_INTERFACE
def hash_password(password: str, iterations: int, salt: Optional[str] = None) -> str:
    """
    Hash a password with PBKDF2-HMAC-SHA256 and a random per-user salt.

    Returns:
        'pbkdf2_sha256$<iterations>$<salt>$<hex digest>'
    """
    if salt is None:
        salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"{_HASH_ALGORITHM}${iterations}${salt}${digest.hex()}"


# PUBLIC_INTERFACE
def verify_password(password: str, encoded: str) -> bool:
    """Check a password against a value produced by hash_password."""
    try:
        algorithm, iterations, salt, _ = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != _HASH_ALGORITHM:
        return False
    candidate = hash_password(password, int(iterations), salt)
    return hmac.compare_digest(candidate, encoded)


# PUBLIC_INTERFACE
def generate_token() -> str:
    """Generate an opaque, URL-safe bearer token."""
    return secrets.token_urlsafe(32)


# PUBLIC_INTERFACE
class IdentityProvider:
    """
    Registers users, verifies credentials, and resolves bearer tokens to users.

    Tokens are opaque random strings backed by a session record; a session
    older than token_ttl is rejected and removed.
    """

    def __init__(
        self,
        users: UserRepository,
        token_ttl: timedelta,
        hash_iterations: int,
        clock: Optional[Clock] = None,
    ) -> None:
        self._users = users
        self._token_ttl = token_ttl
        self._hash_iterations = hash_iterations
        self._clock = clock or utcnow

    def _issue(self, user: UserEntity) -> str:
        token = generate_token()
        self._users.create_session(token, user["id"])
        return token

    def register(self, name: str, email: str, password: str) -> Tuple[str, UserEntity]:
        """
        Create an account and return (token, user).

        Raises:
            ValidationError for a blank name, a short password, or a taken email.
        """
        display_name = name.strip()
        if not display_name:
            raise ValidationError("Name must not be empty")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

        user = self._users.create_user(
            display_name, email, hash_password(password, self._hash_iterations)
        )
        logger.info("Registered user id=%s", user["id"])
        return self._issue(user), user

    def login(self, email: str, password: str) -> Tuple[str, UserEntity]:
        """
        Verify credentials and return (token, user).

        Raises:
            AuthError with one message for unknown emails and wrong passwords alike.
        """
        user = self._users.get_user_by_email(email)
        if user is None or not verify_password(password, user["password_hash"]):
            logger.warning("Failed login attempt")
            raise AuthError("Invalid email or password")
        logger.info("User id=%s logged in", user["id"])
        return self._issue(user), user

    def authenticate(self, token: Optional[str]) -> UserEntity:
        """
        Resolve a bearer token to its user.

        Raises:
            AuthError if the token is missing, unknown, or expired.
        """
        if not token:
            raise AuthError("Not authenticated")
        session = self._users.get_session(token)
        if session is None:
            raise AuthError("Invalid authentication token")
        if self._clock() - session["created_at"] > self._token_ttl:
            self._users.delete_session(token)
            raise AuthError("Authentication token expired")
        user = self._users.get_user(session["user_id"])
        if user is None:
            raise AuthError("Invalid authentication token")
        return user

    def logout(self, token: str) -> None:
        self._users.delete_session(token)


# PUBLIC_INTERFACE
def get_identity_provider(request: Request) -> IdentityProvider:
    """Return the IdentityProvider configured on the running app."""
    return request.app.state.identity


def get_bearer_token(creds: Optional[HTTPAuthorizationCredentials] = Depends(_security)) -> Optional[str]:
    if creds is None or creds.scheme.lower() != "bearer":
        return None
    return creds.credentials


# PUBLIC_INTERFACE
def get_current_user(
    token: Optional[str] = Depends(get_bearer_token),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> UserEntity:
    """
    FastAPI dependency enforcing bearer authentication.

    Raises:
        AuthError (401, WWW-Authenticate: Bearer) if the token is missing or invalid.
    """
    return identity.authenticate(token)
