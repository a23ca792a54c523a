"""Response schemas for the audit read API."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.domain.models.audit import AuditLogEntry, AuditSummary, TaskRef
from app.domain.models.task_event import TaskAction


class TaskRefResponse(BaseModel):
    id: int
    title: str

    @classmethod
    def from_ref(cls, ref: Optional[TaskRef]) -> Optional["TaskRefResponse"]:
        return cls(id=ref.id, title=ref.title) if ref is not None else None


class AuditLogEntryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = None
    task_id: int = Field(..., alias="taskId")
    action: TaskAction
    old_data: Optional[Dict[str, Any]] = Field(None, alias="oldData")
    new_data: Optional[Dict[str, Any]] = Field(None, alias="newData")
    user_id: Optional[str] = Field(None, alias="userId")
    timestamp: datetime
    recorded_at: datetime = Field(..., alias="recordedAt")
    message_id: Optional[str] = Field(None, alias="messageId")
    task: Optional[TaskRefResponse] = None

    @classmethod
    def from_entry(cls, entry: AuditLogEntry) -> "AuditLogEntryResponse":
        return cls(
            id=entry.id,
            task_id=entry.task_id,
            action=entry.action,
            old_data=entry.old_data,
            new_data=entry.new_data,
            user_id=entry.actor,
            timestamp=entry.occurred_at,
            recorded_at=entry.recorded_at,
            message_id=entry.message_id,
            task=TaskRefResponse.from_ref(entry.task),
        )


class ActionCountResponse(BaseModel):
    action: TaskAction
    count: int


class AuditSummaryData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: List[ActionCountResponse]
    total_logs: int = Field(..., alias="totalLogs")
    recent_activity: List[AuditLogEntryResponse] = Field(..., alias="recentActivity")

    @classmethod
    def from_summary(cls, summary: AuditSummary) -> "AuditSummaryData":
        return cls(
            summary=[ActionCountResponse(action=c.action, count=c.count) for c in summary.counts],
            total_logs=summary.total,
            recent_activity=[AuditLogEntryResponse.from_entry(e) for e in summary.recent],
        )


class AuditListEnvelope(BaseModel):
    success: bool = True
    data: List[AuditLogEntryResponse]


class AuditSummaryEnvelope(BaseModel):
    success: bool = True
    data: AuditSummaryData
