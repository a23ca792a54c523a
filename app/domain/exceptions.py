"""Domain-specific exceptions. Pure domain layer, no infrastructure."""


class DomainError(Exception):
    """Base for all domain-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DomainValidationError(DomainError):
    """Raised when domain validation rules are violated."""


class InvalidTaskEventError(DomainValidationError):
    """Raised when a task mutation event breaks the old/new snapshot rules for its action."""


class TaskNotFoundError(DomainError):
    """Raised when a task id does not resolve to an existing task."""
