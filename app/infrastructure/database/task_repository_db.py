"""DB-backed task repository (tasks table)."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.exceptions import PersistenceError
from app.domain.models.task import Task, TaskPriority, TaskStatus
from app.infrastructure.database.models import TaskRow

_COLUMNS = ("title", "description", "status", "priority", "due_date")


def _row_to_task(row: TaskRow) -> Task:
    created_at = row.created_at
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return Task(
        id=row.id,
        title=row.title,
        description=row.description or "",
        status=TaskStatus(row.status),
        priority=TaskPriority(row.priority),
        due_date=row.due_date,
        created_at=created_at,
        updated_at=row.updated_at,
    )


def _column_values(values: Dict[str, Any]) -> Dict[str, Any]:
    out = {k: v for k, v in values.items() if k in _COLUMNS}
    for key in ("status", "priority"):
        if key in out and hasattr(out[key], "value"):
            out[key] = out[key].value
    return out


class DbTaskRepository:
    """Implements TaskRepository with one session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_all(self) -> List[Task]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(TaskRow).order_by(TaskRow.created_at.desc(), TaskRow.id.desc()))
                return [_row_to_task(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list tasks: {e}") from e

    async def get(self, task_id: int) -> Optional[Task]:
        try:
            async with self._session_factory() as session:
                row = await session.get(TaskRow, task_id)
                return _row_to_task(row) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load task {task_id}: {e}") from e

    async def create(self, values: Dict[str, Any]) -> Task:
        row = TaskRow(**_column_values(values))
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create task: {e}") from e
        return _row_to_task(row)

    async def update(self, task_id: int, values: Dict[str, Any]) -> Optional[Task]:
        try:
            async with self._session_factory() as session:
                row = await session.get(TaskRow, task_id)
                if row is None:
                    return None
                for key, value in _column_values(values).items():
                    setattr(row, key, value)
                row.updated_at = datetime.now(timezone.utc)
                await session.commit()
                await session.refresh(row)
                return _row_to_task(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update task {task_id}: {e}") from e

    async def delete(self, task_id: int) -> Optional[Task]:
        try:
            async with self._session_factory() as session:
                row = await session.get(TaskRow, task_id)
                if row is None:
                    return None
                task = _row_to_task(row)
                await session.delete(row)
                await session.commit()
                return task
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete task {task_id}: {e}") from e
