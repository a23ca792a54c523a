"""Application-layer exceptions. Do not reuse domain exceptions."""


class ApplicationError(Exception):
    """Base for all application-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class PersistenceError(ApplicationError):
    """Raised when storage rejects or fails a write or read."""


class ConsumeProcessingError(ApplicationError):
    """A consumed message could not be recorded. The message is requeued or dead-lettered, never lost silently."""
