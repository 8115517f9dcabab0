"""
Completion state transitions for Todo items.

Every update goes through apply_update so that the pair (completed, completed_at)
always satisfies: completed_at is not None  <=>  completed is True.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from .errors import ValidationError
from .models import TodoEntity
from .schemas import TodoUpdate

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def normalize_text(text: Optional[str]) -> str:
    """
    Trim todo text.

    Raises:
        ValidationError if the text is missing or empty after trimming.
    """
    s = (text or "").strip()
    if not s:
        raise ValidationError("Todo text must not be empty")
    return s


# PUBLIC_INTERFACE
def apply_update(current: TodoEntity, data: TodoUpdate, now: datetime) -> TodoEntity:
    """
    Return a copy of current with the patch applied.

    - completed=True on a pending todo stamps completed_at with now.
    - completed=True on an already completed todo keeps its stamp.
    - completed=False clears completed_at.
    - completed omitted leaves both fields untouched.
    """
    updated = current.copy()
    if data.text is not None:
        updated["text"] = normalize_text(data.text)

    if data.completed is True and not current["completed"]:
        updated["completed"] = True
        updated["completed_at"] = now
        logger.debug("Todo %s completed at %s", current["id"], now.isoformat())
    elif data.completed is False:
        updated["completed"] = False
        updated["completed_at"] = None
    return updated
