"""Audit log repository protocol. Application layer depends on this; infrastructure implements it."""

from typing import Dict, List, Optional, Protocol

from app.domain.models.audit import AuditLogEntry
from app.domain.models.task_event import TaskAction


class AuditLogRepository(Protocol):
    """Append-only storage for audit entries. Implementations raise PersistenceError on storage failure."""

    async def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Insert entry and return it with the storage-assigned id."""
        ...

    async def list_all(self, limit: Optional[int] = None) -> List[AuditLogEntry]:
        """Entries ordered by recorded_at descending, optionally limited, each with its task if it still exists."""
        ...

    async def list_for_task(self, task_id: int) -> List[AuditLogEntry]:
        """Entries of one task ordered by recorded_at descending, with the task if it still exists."""
        ...

    async def count_by_action(self) -> Dict[TaskAction, int]:
        ...

    async def count(self) -> int:
        ...
