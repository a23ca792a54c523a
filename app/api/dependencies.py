"""FastAPI dependency injection: pipeline components and services built in the app lifespan."""

import logging
from typing import Annotated

from fastapi import Depends, Request

from app.application.audit_pipeline import AuditPipeline
from app.application.audit_recorder import AuditRecorder
from app.application.task_repository import TaskRepository
from app.application.task_service import TaskService
from app.infrastructure.messaging.publisher import EventPublisher


def get_audit_pipeline(request: Request) -> AuditPipeline:
    """Return the pipeline owned by the running app (set in lifespan)."""
    return request.app.state.audit_pipeline


def get_audit_recorder(
    pipeline: Annotated[AuditPipeline, Depends(get_audit_pipeline)],
) -> AuditRecorder:
    return pipeline.recorder


def get_publisher(
    pipeline: Annotated[AuditPipeline, Depends(get_audit_pipeline)],
) -> EventPublisher:
    return pipeline.publisher


def get_task_repository(request: Request) -> TaskRepository:
    return request.app.state.task_repository


async def get_task_service(
    repository: Annotated[TaskRepository, Depends(get_task_repository)],
    publisher: Annotated[EventPublisher, Depends(get_publisher)],
) -> TaskService:
    """Build TaskService with injected repository, publisher, logger."""
    return TaskService(
        repository=repository,
        publisher=publisher,
        logger=logging.getLogger("app.application.task_service"),
    )

