"""Audit API router: GET /audit, GET /audit/summary, GET /audit/task/{task_id}."""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.dependencies import get_audit_recorder
from app.application.audit_recorder import AuditRecorder
from app.domain.exceptions import DomainValidationError
from app.domain.schemas.audit import (
    AuditListEnvelope,
    AuditLogEntryResponse,
    AuditSummaryData,
    AuditSummaryEnvelope,
)
from app.domain.validators.task_validator import parse_task_id

router = APIRouter()


@router.get("", response_model=AuditListEnvelope)
async def list_audit_logs(
    recorder: Annotated[AuditRecorder, Depends(get_audit_recorder)],
):
    """All audit entries, most recently recorded first."""
    entries = await recorder.list_all()
    return AuditListEnvelope(data=[AuditLogEntryResponse.from_entry(e) for e in entries])


@router.get("/summary", response_model=AuditSummaryEnvelope)
async def audit_summary(
    recorder: Annotated[AuditRecorder, Depends(get_audit_recorder)],
):
    summary = await recorder.summary()
    return AuditSummaryEnvelope(data=AuditSummaryData.from_summary(summary))


@router.get("/task/{task_id}", response_model=AuditListEnvelope)
async def list_task_audit_logs(
    task_id: str,
    recorder: Annotated[AuditRecorder, Depends(get_audit_recorder)],
):
    """Audit entries of one task. 400 unless task_id is a positive integer."""
    try:
        parsed_id = parse_task_id(task_id)
    except DomainValidationError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": e.message})
    entries = await recorder.list_for_task(parsed_id)
    return AuditListEnvelope(data=[AuditLogEntryResponse.from_entry(e) for e in entries])
