"""Tasks API router: CRUD over tasks. Each mutation emits an audit event through TaskService."""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.dependencies import get_task_service
from app.application.task_service import TaskService
from app.domain.exceptions import DomainValidationError
from app.domain.schemas.task import TaskCreateRequest, TaskUpdateRequest
from app.domain.validators.task_validator import parse_task_id

router = APIRouter()


def _invalid_id(e: DomainValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": e.message})


@router.get("")
async def list_tasks(
    service: Annotated[TaskService, Depends(get_task_service)],
):
    tasks = await service.list_tasks()
    return {"success": True, "data": [t.snapshot() for t in tasks], "total": len(tasks)}


@router.get("/{task_id}")
async def get_task(
    task_id: str,
    service: Annotated[TaskService, Depends(get_task_service)],
):
    try:
        parsed_id = parse_task_id(task_id)
    except DomainValidationError as e:
        return _invalid_id(e)
    task = await service.get_task(parsed_id)
    return {"success": True, "data": task.snapshot()}


@router.post("", status_code=201)
async def create_task(
    body: TaskCreateRequest,
    service: Annotated[TaskService, Depends(get_task_service)],
):
    task = await service.create_task(body)
    return {"success": True, "data": task.snapshot()}


@router.put("/{task_id}")
async def update_task(
    task_id: str,
    body: TaskUpdateRequest,
    service: Annotated[TaskService, Depends(get_task_service)],
):
    try:
        parsed_id = parse_task_id(task_id)
    except DomainValidationError as e:
        return _invalid_id(e)
    task = await service.update_task(parsed_id, body)
    return {"success": True, "data": task.snapshot()}


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    service: Annotated[TaskService, Depends(get_task_service)],
):
    try:
        parsed_id = parse_task_id(task_id)
    except DomainValidationError as e:
        return _invalid_id(e)
    task = await service.delete_task(parsed_id)
    return {"success": True, "data": task.snapshot(), "message": "Task deleted successfully"}
