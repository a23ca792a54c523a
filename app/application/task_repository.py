"""Task repository protocol. The task store is the primary source of truth; audit is secondary."""

from typing import Any, Dict, List, Optional, Protocol

from app.domain.models.task import Task


class TaskRepository(Protocol):
    async def list_all(self) -> List[Task]:
        """All tasks, newest first."""
        ...

    async def get(self, task_id: int) -> Optional[Task]:
        ...

    async def create(self, values: Dict[str, Any]) -> Task:
        ...

    async def update(self, task_id: int, values: Dict[str, Any]) -> Optional[Task]:
        """Apply values to an existing task. Returns None if the task does not exist."""
        ...

    async def delete(self, task_id: int) -> Optional[Task]:
        """Delete and return the removed task, or None if it did not exist."""
        ...
