"""Domain models. Pure business entities."""

from app.domain.models.audit import ActionCount, AuditLogEntry, AuditSummary
from app.domain.models.task import Task, TaskPriority, TaskStatus
from app.domain.models.task_event import TaskAction, TaskMutationEvent

__all__ = [
    "ActionCount",
    "AuditLogEntry",
    "AuditSummary",
    "Task",
    "TaskAction",
    "TaskMutationEvent",
    "TaskPriority",
    "TaskStatus",
]
