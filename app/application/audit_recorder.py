"""Audit recorder: turns consumed task mutation events into audit entries and answers audit queries."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from app.application.audit_repository import AuditLogRepository
from app.application.exceptions import PersistenceError
from app.domain.models.audit import ActionCount, AuditLogEntry, AuditSummary
from app.domain.models.task_event import TaskAction, TaskMutationEvent

DEFAULT_RECENT_LIMIT = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditRecorder:
    """
    Persistence side of the audit pipeline. No broker knowledge.
    recorded_at never goes backwards for one recorder, even if the wall clock does.
    """

    def __init__(
        self,
        repository: AuditLogRepository,
        *,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
        clock: Callable[[], datetime] = _utcnow,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._repository = repository
        self._recent_limit = recent_limit
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._last_recorded_at: Optional[datetime] = None

    def _next_recorded_at(self) -> datetime:
        now = self._clock()
        if self._last_recorded_at is not None and now <= self._last_recorded_at:
            now = self._last_recorded_at + timedelta(microseconds=1)
        return now

    async def persist(
        self,
        event: TaskMutationEvent,
        message_id: Optional[str] = None,
    ) -> AuditLogEntry:
        """Store one entry for event. Raises PersistenceError if storage fails."""
        recorded_at = self._next_recorded_at()
        entry = AuditLogEntry(
            task_id=event.task_id,
            action=event.action,
            occurred_at=event.occurred_at,
            recorded_at=recorded_at,
            old_data=event.old_data,
            new_data=event.new_data,
            actor=event.actor,
            message_id=message_id,
        )
        try:
            stored = await self._repository.add(entry)
        except PersistenceError as e:
            self._logger.error(
                "audit_persist_failed",
                extra={
                    "task_id": event.task_id,
                    "action": event.action.value,
                    "message_id": message_id,
                    "error": e.message,
                },
            )
            raise
        self._last_recorded_at = recorded_at
        self._logger.info(
            "audit_entry_recorded",
            extra={
                "audit_id": stored.id,
                "task_id": stored.task_id,
                "action": stored.action.value,
                "message_id": message_id,
            },
        )
        return stored

    async def list_all(self) -> List[AuditLogEntry]:
        return await self._repository.list_all()

    async def list_for_task(self, task_id: int) -> List[AuditLogEntry]:
        return await self._repository.list_for_task(task_id)

    async def summary(self) -> AuditSummary:
        """Counts per recorded action, total, and the most recent entries."""
        by_action = await self._repository.count_by_action()
        counts = [
            ActionCount(action=action, count=by_action[action])
            for action in TaskAction
            if by_action.get(action)
        ]
        total = await self._repository.count()
        recent = await self._repository.list_all(limit=self._recent_limit)
        return AuditSummary(counts=counts, total=total, recent=recent)
