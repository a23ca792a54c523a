# app/api/routers/health.py

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.api.dependencies import get_audit_pipeline
from app.application.audit_pipeline import AuditPipeline
from app.config.settings import get_settings

router = APIRouter()


@router.get("/health")
async def health(
    request: Request,
    pipeline: Annotated[AuditPipeline, Depends(get_audit_pipeline)],
):
    """Health check. The API stays "ok" while the audit pipeline is degraded; broker state is reported separately."""
    settings = get_settings()
    body = {
        "status": "ok",
        "correlation_id": request.state.correlation_id,
        "environment": settings.environment,
        "version": settings.version,
        **pipeline.status(),
    }
    if settings.enable_metrics:
        body["metrics"] = pipeline.metrics.export_metrics()
    return body
