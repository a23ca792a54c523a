# app/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.middleware import CorrelationIdMiddleware, RequestLogMiddleware
from app.api.routers import audit, health, tasks
from app.application.audit_pipeline import AuditPipeline
from app.application.exceptions import ApplicationError
from app.config.logging import configure_logging
from app.config.settings import get_settings
from app.domain.exceptions import DomainError, DomainValidationError, TaskNotFoundError
from app.infrastructure.database.audit_repository_db import DbAuditLogRepository
from app.infrastructure.database.session import Database
from app.infrastructure.database.task_repository_db import DbTaskRepository

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = Database(settings.database_url, echo=settings.debug)
    await database.create_all()
    pipeline = AuditPipeline.from_settings(
        settings,
        DbAuditLogRepository(database.sessionmaker),
    )
    app.state.task_repository = DbTaskRepository(database.sessionmaker)
    app.state.audit_pipeline = pipeline
    await pipeline.start()
    try:
        yield
    finally:
        await pipeline.shutdown()
        await database.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
    lifespan=lifespan,
)

# Middleware order: last added runs first (outermost). Request flow: CorrelationId -> RequestLog.
app.add_middleware(RequestLogMiddleware)
app.add_middleware(CorrelationIdMiddleware)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return _error(400, message)


@app.exception_handler(TaskNotFoundError)
async def task_not_found_handler(request, exc: TaskNotFoundError):
    return _error(404, exc.message)


@app.exception_handler(DomainValidationError)
async def domain_validation_error_handler(request, exc: DomainValidationError):
    return _error(422, exc.message)


@app.exception_handler(DomainError)
async def domain_error_handler(request, exc: DomainError):
    return _error(400, exc.message)


@app.exception_handler(ApplicationError)
async def application_error_handler(request, exc: ApplicationError):
    logger.error("application_error", extra={"error": exc.message})
    return _error(500, exc.message)


@app.exception_handler(Exception)
async def unexpected_error_handler(request, exc: Exception):
    logger.exception("unexpected_error")
    return _error(500, "Internal server error")


# Routers: /health, /tasks, /audit
app.include_router(health.router)
app.include_router(tasks.router, prefix="/tasks")
app.include_router(audit.router, prefix="/audit")
