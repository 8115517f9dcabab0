from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import IdentityProvider
from .errors import AppError
from .logging_config import configure_logging
from .repositories import build_repositories
from .routers import todos as todos_router
from .routers import users as users_router
from .settings import Settings, get_settings
from .utils import Clock

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "users",
        "description": "Registration, login, logout, and the caller's profile with todo statistics.",
    },
    {
        "name": "todos",
        "description": "Owner-scoped CRUD for Todo items and the completion history views.",
    },
]


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """
        Map application errors to their status code.

        Response format:
            {"error": "<NotFound|ValidationError|AuthError|InternalError>", "message": "..."}
        """
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "message": exc.message},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": [... pydantic/fastapi error details ...]
            }
        """
        return JSONResponse(
            status_code=400,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": _jsonable_errors(exc),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"error": "InternalError", "message": "Internal server error"}
        if settings.is_development:
            content["detail"] = f"{type(exc).__name__}: {exc}"
        return JSONResponse(status_code=500, content=content)


def _jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that are not JSON serializable
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted.
        clock: Optional time source for server-assigned timestamps (tests inject a fixed clock).
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Todo Tracker Backend",
        description="Personal todo tracking with per-user isolation and completion history.",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )

    repository, users = build_repositories(settings, clock=clock)
    app.state.settings = settings
    app.state.repository = repository
    app.state.identity = IdentityProvider(
        users,
        token_ttl=timedelta(minutes=settings.token_ttl_minutes),
        hash_iterations=settings.password_hash_iterations,
        clock=clock,
    )

    # Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app, settings)

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(users_router.router)
    app.include_router(todos_router.router)

    logger.info(
        "Todo tracker started (env=%s, backend=%s, history_timezone=%s)",
        settings.app_env,
        settings.persistence_backend,
        settings.history_timezone,
    )
    return app


app = create_app()
