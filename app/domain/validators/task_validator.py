"""Validators for task identifiers and mutation events. Pure functions, no infrastructure or DB access."""

from app.domain.exceptions import DomainValidationError, InvalidTaskEventError
from app.domain.models.task_event import TaskAction, TaskMutationEvent


def parse_task_id(raw: str) -> int:
    """Parse a path segment as a task id. Raises DomainValidationError unless it is a positive integer."""
    try:
        task_id = int(str(raw).strip())
    except (TypeError, ValueError):
        raise DomainValidationError("Invalid task ID") from None
    if task_id <= 0:
        raise DomainValidationError("Invalid task ID")
    return task_id


def validate_task_mutation_event(event: TaskMutationEvent) -> None:
    """
    Business rules beyond the constructor checks: positive task id and, for UPDATE,
    at least one field that actually changed.
    """
    if event.task_id <= 0:
        raise InvalidTaskEventError(f"task_id must be positive, got {event.task_id}")
    if event.action is TaskAction.UPDATE and not event.changed_fields():
        raise InvalidTaskEventError("UPDATE event has identical old_data and new_data")
