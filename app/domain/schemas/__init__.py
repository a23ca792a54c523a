"""Domain schemas. Request/response and wire serialization."""

from app.domain.schemas.audit import (
    ActionCountResponse,
    AuditListEnvelope,
    AuditLogEntryResponse,
    AuditSummaryData,
    AuditSummaryEnvelope,
)
from app.domain.schemas.task import TaskCreateRequest, TaskUpdateRequest
from app.domain.schemas.task_event import (
    TaskMutationMessage,
    decode_task_event,
    encode_task_event,
)

__all__ = [
    "ActionCountResponse",
    "AuditListEnvelope",
    "AuditLogEntryResponse",
    "AuditSummaryData",
    "AuditSummaryEnvelope",
    "TaskCreateRequest",
    "TaskMutationMessage",
    "TaskUpdateRequest",
    "decode_task_event",
    "encode_task_event",
]
