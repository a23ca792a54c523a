"""Domain model for task mutation events. Pure business semantics, no ORM or broker."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from app.domain.exceptions import InvalidTaskEventError


class TaskAction(str, Enum):
    """Kind of task mutation. Value is the wire/storage form."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TaskMutationEvent:
    """
    Immutable record of one completed task mutation.

    CREATE carries only new_data, DELETE only old_data (the pre-deletion snapshot),
    UPDATE carries both. Use the created/updated/deleted constructors.
    """

    action: TaskAction
    task_id: int
    new_data: Optional[Dict[str, Any]] = None
    old_data: Optional[Dict[str, Any]] = None
    occurred_at: datetime = field(default_factory=_utcnow)
    actor: Optional[str] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        if not isinstance(self.action, TaskAction):
            object.__setattr__(self, "action", TaskAction(self.action))
        _check_snapshots(self.action, self.new_data, self.old_data)

    @classmethod
    def created(cls, task_id: int, new_data: Dict[str, Any]) -> "TaskMutationEvent":
        return cls(action=TaskAction.CREATE, task_id=task_id, new_data=new_data)

    @classmethod
    def updated(
        cls,
        task_id: int,
        old_data: Dict[str, Any],
        new_data: Dict[str, Any],
    ) -> "TaskMutationEvent":
        return cls(action=TaskAction.UPDATE, task_id=task_id, new_data=new_data, old_data=old_data)

    @classmethod
    def deleted(cls, task_id: int, old_data: Dict[str, Any]) -> "TaskMutationEvent":
        return cls(action=TaskAction.DELETE, task_id=task_id, old_data=old_data)

    def changed_fields(self) -> Dict[str, tuple]:
        """Fields whose value differs between old_data and new_data, as (old, new) pairs."""
        old = self.old_data or {}
        new = self.new_data or {}
        return {
            key: (old.get(key), new.get(key))
            for key in sorted(set(old) | set(new))
            if old.get(key) != new.get(key)
        }


def _check_snapshots(
    action: TaskAction,
    new_data: Optional[Dict[str, Any]],
    old_data: Optional[Dict[str, Any]],
) -> None:
    needs_new = action in (TaskAction.CREATE, TaskAction.UPDATE)
    needs_old = action in (TaskAction.UPDATE, TaskAction.DELETE)
    if needs_new != (new_data is not None):
        raise InvalidTaskEventError(
            f"{action.value} event must {'' if needs_new else 'not '}carry new_data"
        )
    if needs_old != (old_data is not None):
        raise InvalidTaskEventError(
            f"{action.value} event must {'' if needs_old else 'not '}carry old_data"
        )
