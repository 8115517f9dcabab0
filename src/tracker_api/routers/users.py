from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from ..auth import IdentityProvider, get_bearer_token, get_current_user, get_identity_provider
from ..models import UserEntity
from ..repositories import Repository, get_repository
from ..schemas import AuthResponse, LoginRequest, ProfileOut, RegisterRequest, Stats, UserOut

router = APIRouter(
    prefix="/users",
    tags=["users"],
)


def _auth_response(token: str, user: UserEntity) -> AuthResponse:
    return AuthResponse(token=token, user=UserOut(**user))


# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create an account and return a bearer token for it.",
    responses={400: {"description": "Validation error or email already registered"}},
)
def register(
    payload: RegisterRequest,
    identity: IdentityProvider = Depends(get_identity_provider),
) -> AuthResponse:
    token, user = identity.register(payload.name, payload.email, payload.password)
    return _auth_response(token, user)


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login",
    description="Exchange email and password for a bearer token.",
    responses={401: {"description": "Invalid email or password"}},
)
def login(
    payload: LoginRequest,
    identity: IdentityProvider = Depends(get_identity_provider),
) -> AuthResponse:
    token, user = identity.login(payload.email, payload.password)
    return _auth_response(token, user)


# PUBLIC_INTERFACE
@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Logout",
    description="Revoke the bearer token used for this request.",
    dependencies=[Depends(get_current_user)],
    responses={401: {"description": "Missing, invalid, or expired bearer token"}},
)
def logout(
    token: Optional[str] = Depends(get_bearer_token),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Response:
    identity.logout(token)  # type: ignore[arg-type]
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=ProfileOut,
    summary="Profile",
    description="The caller's public profile with total, completed, and pending todo counts.",
    responses={401: {"description": "Missing, invalid, or expired bearer token"}},
)
def me(
    user: UserEntity = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
) -> ProfileOut:
    total, completed = repo.stats(user["id"])
    return ProfileOut(
        user=UserOut(**user),
        stats=Stats(total_todos=total, completed_todos=completed, pending_todos=total - completed),
    )
