"""Wire schema for task mutation messages published to the broker."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.domain.exceptions import InvalidTaskEventError
from app.domain.models.task_event import TaskAction, TaskMutationEvent


class TaskMutationMessage(BaseModel):
    """JSON body of a published task mutation. Field names follow the camelCase wire format."""

    model_config = ConfigDict(populate_by_name=True)

    action: TaskAction
    task_id: int = Field(..., alias="taskId", gt=0)
    new_data: Optional[Dict[str, Any]] = Field(None, alias="newData")
    old_data: Optional[Dict[str, Any]] = Field(None, alias="oldData")
    timestamp: datetime
    user_id: Optional[str] = Field(None, alias="userId")

    @classmethod
    def from_event(cls, event: TaskMutationEvent) -> "TaskMutationMessage":
        return cls(
            action=event.action,
            task_id=event.task_id,
            new_data=event.new_data,
            old_data=event.old_data,
            timestamp=event.occurred_at,
            user_id=event.actor,
        )

    def to_event(self, event_id: Optional[str] = None) -> TaskMutationEvent:
        kwargs: Dict[str, Any] = {}
        if event_id:
            kwargs["event_id"] = event_id
        return TaskMutationEvent(
            action=self.action,
            task_id=self.task_id,
            new_data=self.new_data,
            old_data=self.old_data,
            occurred_at=self.timestamp,
            actor=self.user_id,
            **kwargs,
        )


def encode_task_event(event: TaskMutationEvent) -> bytes:
    return TaskMutationMessage.from_event(event).model_dump_json(by_alias=True).encode()


def decode_task_event(body: bytes, message_id: Optional[str] = None) -> TaskMutationEvent:
    """Parse a message body back into an event. Raises InvalidTaskEventError on any malformed payload."""
    try:
        message = TaskMutationMessage.model_validate_json(body)
    except ValidationError as e:
        raise InvalidTaskEventError(f"Malformed task event payload: {e.error_count()} error(s)") from e
    return message.to_event(message_id)
