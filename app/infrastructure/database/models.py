# app/infrastructure/database/models.py

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from app.infrastructure.database.session import Base

JsonColumnType = JSON().with_variant(JSONB(), "postgresql")


class TaskRow(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="pending")
    priority = Column(String(10), nullable=False, default="medium")
    due_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class AuditLogRow(Base):
    """Append-only audit trail. No FK to tasks: history outlives deleted tasks."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, nullable=False, index=True)
    action = Column(String(10), nullable=False)
    old_data = Column(JsonColumnType, nullable=True)
    new_data = Column(JsonColumnType, nullable=True)
    user_id = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False, index=True)
    # Broker message id. Not unique: a redelivered message is recorded again
    message_id = Column(String, nullable=True, index=True)
