"""
Send job model for bulk message dispatch.

A job is created per batch item and moved through its states by the
job queue and the worker pool.
"""
import enum
from datetime import datetime
from typing import Any
from sqlalchemy import JSON, BigInteger, String, Text, Integer, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base, TimestampMixin


class SendJobState(str, enum.Enum):
    """Send job state. A delayed job is WAITING with not_before in the future."""
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SendJobState.COMPLETED, SendJobState.FAILED)


class SendJob(Base, TimestampMixin):
    """
    Outbound send job.

    Eligible for claim iff WAITING and not_before <= now. Among eligible
    jobs the lowest (priority, sequence) is dispatched first.
    """
    __tablename__ = "send_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    target: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    body: Mapped[Any] = mapped_column(JSON, nullable=False)
    not_before: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sequence: Mapped[int] = mapped_column(BigInteger, nullable=False)
    state: Mapped[SendJobState] = mapped_column(
        SQLEnum(SendJobState, native_enum=False, create_type=False),
        nullable=False,
        default=SendJobState.WAITING,
        index=True
    )
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    message_handle: Mapped[str | None] = mapped_column(String(255), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.priority, self.sequence)

    def to_dict(self) -> dict:
        return {
            "jobId": self.id,
            "target": self.target,
            "body": self.body,
            "notBefore": self.not_before.isoformat() if self.not_before else None,
            "priority": self.priority,
            "state": self.state.value,
            "attemptCount": self.attempt_count,
            "maxAttempts": self.max_attempts,
            "lastError": self.last_error,
            "messageHandle": self.message_handle,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }

    def __repr__(self):
        return f"<SendJob(id={self.id}, target={self.target}, state={self.state})>"
