"""DB-backed audit log repository. Persists audit entries to PostgreSQL (audit_logs table)."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.exceptions import PersistenceError
from app.domain.models.audit import AuditLogEntry, TaskRef
from app.domain.models.task_event import TaskAction
from app.infrastructure.database.models import AuditLogRow, TaskRow


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row_to_entry(row: AuditLogRow, task: Optional[TaskRef] = None) -> AuditLogEntry:
    return AuditLogEntry(
        id=row.id,
        task_id=row.task_id,
        action=TaskAction(row.action),
        occurred_at=_aware(row.timestamp),
        recorded_at=_aware(row.recorded_at),
        old_data=row.old_data,
        new_data=row.new_data,
        actor=row.user_id,
        message_id=row.message_id,
        task=task,
    )


def _entries_with_tasks():
    # No foreign key: entries outlive their task, which then joins as NULL.
    return (
        select(AuditLogRow, TaskRow.id, TaskRow.title)
        .outerjoin(TaskRow, TaskRow.id == AuditLogRow.task_id)
        .order_by(AuditLogRow.recorded_at.desc(), AuditLogRow.id.desc())
    )


class DbAuditLogRepository:
    """Implements AuditLogRepository. One session per call, so it is safe to use outside request scope."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        row = AuditLogRow(
            task_id=entry.task_id,
            action=entry.action.value,
            old_data=entry.old_data,
            new_data=entry.new_data,
            user_id=entry.actor,
            timestamp=entry.occurred_at,
            recorded_at=entry.recorded_at,
            message_id=entry.message_id,
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to store audit entry for task {entry.task_id}: {e}") from e
        return _row_to_entry(row)

    async def list_all(self, limit: Optional[int] = None) -> List[AuditLogEntry]:
        stmt = _entries_with_tasks()
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._fetch(stmt)

    async def list_for_task(self, task_id: int) -> List[AuditLogEntry]:
        stmt = _entries_with_tasks().where(AuditLogRow.task_id == task_id)
        return await self._fetch(stmt)

    async def count_by_action(self) -> Dict[TaskAction, int]:
        stmt = select(AuditLogRow.action, func.count()).group_by(AuditLogRow.action)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = result.all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count audit entries: {e}") from e
        return {TaskAction(action): int(count) for action, count in rows}

    async def count(self) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(func.count()).select_from(AuditLogRow))
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count audit entries: {e}") from e

    async def _fetch(self, stmt) -> List[AuditLogEntry]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = result.all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read audit entries: {e}") from e
        return [
            _row_to_entry(row, TaskRef(id=task_id, title=title) if task_id is not None else None)
            for row, task_id, title in rows
        ]
