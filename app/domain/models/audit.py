"""Audit trail entities. Immutable once recorded."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.domain.models.task_event import TaskAction


@dataclass(frozen=True)
class TaskRef:
    """The task an entry belongs to, as it currently exists in the task store."""

    id: int
    title: str


@dataclass(frozen=True)
class AuditLogEntry:
    """
    One persisted task mutation. id is assigned by storage (None before insert).
    recorded_at may lag occurred_at by the queueing delay.
    message_id is the broker message identifier; it is not unique, so
    redelivered messages can produce more than one entry for a mutation.
    task is filled in on reads and stays None once the task has been deleted.
    """

    task_id: int
    action: TaskAction
    occurred_at: datetime
    recorded_at: datetime
    old_data: Optional[Dict[str, Any]] = None
    new_data: Optional[Dict[str, Any]] = None
    actor: Optional[str] = None
    message_id: Optional[str] = None
    task: Optional[TaskRef] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class ActionCount:
    action: TaskAction
    count: int


@dataclass(frozen=True)
class AuditSummary:
    """Entry counts per action plus the most recent entries."""

    counts: List[ActionCount]
    total: int
    recent: List[AuditLogEntry] = field(default_factory=list)
