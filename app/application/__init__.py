# Application layer: services that orchestrate domain and infrastructure.

from app.application.audit_recorder import AuditRecorder
from app.application.audit_repository import AuditLogRepository
from app.application.exceptions import (
    ApplicationError,
    ConsumeProcessingError,
    PersistenceError,
)
from app.application.task_repository import TaskRepository

__all__ = [
    "ApplicationError",
    "AuditLogRepository",
    "AuditRecorder",
    "ConsumeProcessingError",
    "PersistenceError",
    "TaskRepository",
]
