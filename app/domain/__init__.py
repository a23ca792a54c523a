"""Domain layer: models, schemas, validators, exceptions. Pure business logic only."""

from app.domain.exceptions import (
    DomainError,
    DomainValidationError,
    InvalidTaskEventError,
    TaskNotFoundError,
)
from app.domain.models import (
    ActionCount,
    AuditLogEntry,
    AuditSummary,
    Task,
    TaskAction,
    TaskMutationEvent,
    TaskPriority,
    TaskStatus,
)
from app.domain.schemas import (
    AuditLogEntryResponse,
    TaskCreateRequest,
    TaskMutationMessage,
    TaskUpdateRequest,
    decode_task_event,
    encode_task_event,
)
from app.domain.validators import parse_task_id, validate_task_mutation_event

__all__ = [
    "ActionCount",
    "AuditLogEntry",
    "AuditLogEntryResponse",
    "AuditSummary",
    "DomainError",
    "DomainValidationError",
    "InvalidTaskEventError",
    "Task",
    "TaskAction",
    "TaskCreateRequest",
    "TaskMutationEvent",
    "TaskMutationMessage",
    "TaskNotFoundError",
    "TaskPriority",
    "TaskStatus",
    "TaskUpdateRequest",
    "decode_task_event",
    "encode_task_event",
    "parse_task_id",
    "validate_task_mutation_event",
]
