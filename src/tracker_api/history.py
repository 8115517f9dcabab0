"""
Completion history read-models.

Both views are derived from the repository on every call and never write to it.
"""
from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, List, Optional, Tuple

from .errors import ValidationError
from .models import TodoEntity
from .repositories import Repository
from .utils import EPOCH, parse_bound, utcnow


# PUBLIC_INTERFACE
def flat_history(repo: Repository, user_id: int) -> List[TodoEntity]:
    """Return the owner's completed todos, most recently completed first."""
    return repo.list_completed(user_id)


# PUBLIC_INTERFACE
def resolve_range(
    start_date: Optional[str],
    end_date: Optional[str],
    tz: tzinfo,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """
    Turn the startDate/endDate query values into an inclusive UTC range.

    Omitted bounds default to the epoch and to now. Date-only values cover the
    whole day in tz.

    Raises:
        ValidationError on malformed bounds or when start is after end.
    """
    start = parse_bound(start_date, tz) or EPOCH
    end = parse_bound(end_date, tz, end_of_day=True) or (now or utcnow())
    if start > end:
        raise ValidationError("startDate must not be after endDate")
    return start, end


# PUBLIC_INTERFACE
def group_by_day(todos: List[TodoEntity], tz: tzinfo = timezone.utc) -> List[Dict[str, Any]]:
    """
    Group completed todos by the calendar day of completed_at in tz.

    Returns buckets shaped {"date": "YYYY-MM-DD", "todos": [{id, text, completed_at}], "count": n},
    sorted by date descending; todos within a bucket are sorted by completed_at descending.
    """
    buckets: Dict[str, List[TodoEntity]] = {}
    for todo in todos:
        completed_at = todo["completed_at"]
        if not todo["completed"] or completed_at is None:
            continue
        key = completed_at.astimezone(tz).date().isoformat()
        buckets.setdefault(key, []).append(todo)

    result = []
    for key in sorted(buckets, reverse=True):
        items = sorted(buckets[key], key=lambda t: (t["completed_at"], t["id"]), reverse=True)
        result.append(
            {
                "date": key,
                "todos": [
                    {"id": t["id"], "text": t["text"], "completed_at": t["completed_at"]}
                    for t in items
                ],
                "count": len(items),
            }
        )
    return result


# PUBLIC_INTERFACE
def history_by_date(
    repo: Repository,
    user_id: int,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    tz: tzinfo = timezone.utc,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Return the owner's completed todos within the range, bucketed by day."""
    start, end = resolve_range(start_date, end_date, tz, now)
    return group_by_day(repo.list_completed(user_id, start, end), tz)
