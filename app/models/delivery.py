"""
Delivery record model.

Tracks every callback (webhook) notification and its attempts.
"""
import enum
from datetime import datetime
from typing import Any
from sqlalchemy import JSON, String, Text, Integer, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base, TimestampMixin


class DeliveryState(str, enum.Enum):
    """Delivery record state."""
    PENDING = "pending"
    RETRYING = "retrying"
    DELIVERED = "delivered"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeliveryState.DELIVERED, DeliveryState.FAILED)


class DeliveryRecord(Base, TimestampMixin):
    """
    One event's notification to the callback endpoint.

    The payload is a snapshot taken when the record is created and is never
    mutated afterwards, so the record shows exactly what was sent.
    """
    __tablename__ = "delivery_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    event_kind: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    payload: Mapped[Any] = mapped_column(JSON, nullable=False)
    target_url: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[DeliveryState] = mapped_column(
        SQLEnum(DeliveryState, native_enum=False, create_type=False),
        nullable=False,
        default=DeliveryState.PENDING,
        index=True
    )
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    last_http_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_retry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_attempt_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "eventKind": self.event_kind,
            "payload": self.payload,
            "targetUrl": self.target_url,
            "state": self.state.value,
            "attemptCount": self.attempt_count,
            "maxAttempts": self.max_attempts,
            "lastHttpStatus": self.last_http_status,
            "lastError": self.last_error,
            "nextRetryAt": self.next_retry_at.isoformat() if self.next_retry_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "lastAttemptAt": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }

    def __repr__(self):
        return f"<DeliveryRecord(id={self.id}, event={self.event_kind}, state={self.state})>"
