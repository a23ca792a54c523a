"""Domain validators. Pure validation functions."""

from app.domain.validators.task_validator import parse_task_id, validate_task_mutation_event

__all__ = [
    "parse_task_id",
    "validate_task_mutation_event",
]
