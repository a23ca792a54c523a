"""Scalability layer: bounded background execution. No FastAPI."""

from app.scalability.bulkhead import BulkheadExecutor, BulkheadFullError

__all__ = [
    "BulkheadExecutor",
    "BulkheadFullError",
]
