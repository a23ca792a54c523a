"""Task application service. The task store is authoritative; audit publication is best-effort and never fails a mutation."""

import logging
from typing import Any, Dict, List

from app.application.task_repository import TaskRepository
from app.domain.exceptions import InvalidTaskEventError, TaskNotFoundError
from app.domain.models.task import Task
from app.domain.models.task_event import TaskMutationEvent
from app.domain.schemas.task import TaskCreateRequest, TaskUpdateRequest
from app.domain.validators.task_validator import validate_task_mutation_event
from app.infrastructure.messaging.publisher import EventPublisher

# Fields that keep their current value when an update sends null
_NON_NULLABLE_UPDATE_FIELDS = ("title", "status", "priority")


class TaskService:
    """
    CRUD orchestration only. No HTTP, no FastAPI.
    Every completed create/update/delete emits one TaskMutationEvent.
    """

    def __init__(
        self,
        repository: TaskRepository,
        publisher: EventPublisher,
        logger: logging.Logger,
    ) -> None:
        self._repository = repository
        self._publisher = publisher
        self._logger = logger

    async def list_tasks(self) -> List[Task]:
        return await self._repository.list_all()

    async def get_task(self, task_id: int) -> Task:
        task = await self._repository.get(task_id)
        if task is None:
            raise TaskNotFoundError("Task not found")
        return task

    async def create_task(self, request: TaskCreateRequest) -> Task:
        task = await self._repository.create(request.model_dump())
        self._logger.info("task_created", extra={"task_id": task.id})
        self._emit(TaskMutationEvent.created(task.id, task.snapshot()))
        return task

    async def update_task(self, task_id: int, request: TaskUpdateRequest) -> Task:
        existing = await self.get_task(task_id)
        values = _update_values(request)
        task = await self._repository.update(task_id, values)
        if task is None:
            # Deleted between read and write
            raise TaskNotFoundError("Task not found")
        self._logger.info("task_updated", extra={"task_id": task.id, "fields": sorted(values)})
        self._emit(TaskMutationEvent.updated(task.id, existing.snapshot(), task.snapshot()))
        return task

    async def delete_task(self, task_id: int) -> Task:
        task = await self._repository.delete(task_id)
        if task is None:
            raise TaskNotFoundError("Task not found")
        self._logger.info("task_deleted", extra={"task_id": task.id})
        self._emit(TaskMutationEvent.deleted(task.id, task.snapshot()))
        return task

    def _emit(self, event: TaskMutationEvent) -> None:
        """Hand the event to the publisher. The result is inspected for logging and then discarded."""
        try:
            validate_task_mutation_event(event)
        except InvalidTaskEventError as e:
            self._logger.warning(
                "audit_event_invalid",
                extra={"task_id": event.task_id, "action": event.action.value, "error": e.message},
            )
            return
        result = self._publisher.publish(event)
        if not result.accepted:
            self._logger.info(
                "audit_event_not_sent",
                extra={
                    "task_id": event.task_id,
                    "action": event.action.value,
                    "status": result.status.value,
                },
            )


def _update_values(request: TaskUpdateRequest) -> Dict[str, Any]:
    values = request.model_dump(exclude_unset=True)
    for key in _NON_NULLABLE_UPDATE_FIELDS:
        if key in values and values[key] is None:
            del values[key]
    if "description" in values and values["description"] is None:
        values["description"] = ""
    return values
