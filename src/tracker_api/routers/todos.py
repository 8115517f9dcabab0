from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from ..auth import get_current_user
from ..history import flat_history, history_by_date
from ..models import UserEntity
from ..repositories import Repository, get_repository
from ..schemas import HistoryBucket, TodoCreate, TodoOut, TodoUpdate
from ..utils import resolve_timezone

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/todos",
    tags=["todos"],
    dependencies=[Depends(get_current_user)],
    responses={401: {"description": "Missing, invalid, or expired bearer token"}},
)


def _get_repo(repo: Repository = Depends(get_repository)) -> Repository:
    """
    Dependency wrapper for repository to keep signatures clean.
    """
    return repo


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TodoOut],
    summary="List Todos",
    description="List the caller's todos, newest first.",
)
def list_todos(
    user: UserEntity = Depends(get_current_user),
    repo: Repository = Depends(_get_repo),
) -> List[TodoOut]:
    return [TodoOut(**t) for t in repo.list(user["id"])]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new pending Todo item owned by the caller.",
    responses={
        201: {"description": "Todo created successfully"},
        400: {"description": "Validation error"},
    },
)
def create_todo(
    payload: TodoCreate,
    user: UserEntity = Depends(get_current_user),
    repo: Repository = Depends(_get_repo),
) -> TodoOut:
    created = repo.create(user["id"], payload)
    logger.info("User id=%s created todo id=%s", user["id"], created["id"])
    return TodoOut(**created)


# PUBLIC_INTERFACE
@router.get(
    "/history",
    response_model=List[TodoOut],
    summary="Completion History",
    description="All of the caller's completed todos, most recently completed first.",
)
def get_history(
    user: UserEntity = Depends(get_current_user),
    repo: Repository = Depends(_get_repo),
) -> List[TodoOut]:
    return [TodoOut(**t) for t in flat_history(repo, user["id"])]


# PUBLIC_INTERFACE
@router.get(
    "/history/byDate",
    response_model=List[HistoryBucket],
    summary="Completion History by Date",
    description=(
        "Completed todos grouped by calendar day, newest day first.\n\n"
        "Query parameters:\n"
        "- startDate: inclusive lower bound, YYYY-MM-DD or ISO8601 datetime (default: epoch)\n"
        "- endDate: inclusive upper bound, YYYY-MM-DD or ISO8601 datetime (default: now)\n"
        "- tz: IANA timezone defining day boundaries (default: server HISTORY_TIMEZONE)"
    ),
    responses={400: {"description": "Invalid date range or timezone"}},
)
def get_history_by_date(
    request: Request,
    start_date: Optional[str] = Query(None, alias="startDate", description="Inclusive start"),
    end_date: Optional[str] = Query(None, alias="endDate", description="Inclusive end"),
    tz: Optional[str] = Query(None, description="IANA timezone name, e.g. Europe/Berlin"),
    user: UserEntity = Depends(get_current_user),
    repo: Repository = Depends(_get_repo),
) -> List[HistoryBucket]:
    zone = resolve_timezone(tz or request.app.state.settings.history_timezone)
    buckets = history_by_date(repo, user["id"], start_date, end_date, zone, now=repo.now())
    return [HistoryBucket(**b) for b in buckets]


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Get Todo",
    description="Get a single Todo item owned by the caller.",
    responses={404: {"description": "Todo not found"}},
)
def get_todo(
    todo_id: int,
    user: UserEntity = Depends(get_current_user),
    repo: Repository = Depends(_get_repo),
) -> TodoOut:
    return TodoOut(**repo.get(user["id"], todo_id))


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Update Todo",
    description=(
        "Partially update a Todo item: text and/or completed. Completing a pending todo "
        "stamps completedAt with the server time; un-completing clears it. A client-supplied "
        "completedAt is ignored."
    ),
    responses={
        200: {"description": "Todo updated"},
        400: {"description": "Validation error"},
        404: {"description": "Todo not found"},
    },
)
def update_todo(
    todo_id: int,
    payload: TodoUpdate,
    user: UserEntity = Depends(get_current_user),
    repo: Repository = Depends(_get_repo),
) -> TodoOut:
    updated = repo.update(user["id"], todo_id, payload)
    return TodoOut(**updated)


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Todo",
    description="Delete a Todo item owned by the caller.",
    responses={
        204: {"description": "Todo deleted"},
        404: {"description": "Todo not found"},
    },
)
def delete_todo(
    todo_id: int,
    user: UserEntity = Depends(get_current_user),
    repo: Repository = Depends(_get_repo),
) -> Response:
    """
    Delete a Todo. Returns 204 on success, 404 if not found or not owned.
    """
    repo.delete(user["id"], todo_id)
    logger.info("User id=%s deleted todo id=%s", user["id"], todo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
