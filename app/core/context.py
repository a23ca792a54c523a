# app/core/context.py

import contextvars
import uuid
from typing import Optional

correlation_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def bind_correlation_id(value: Optional[str] = None) -> str:
    """Set the correlation id for the current request/task context, generating one if absent."""
    correlation_id = (value or "").strip() or str(uuid.uuid4())
    correlation_id_ctx.set(correlation_id)
    return correlation_id


def current_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()
