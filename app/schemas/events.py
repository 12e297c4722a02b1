"""
Event payload schemas.

Each event kind reported by the messaging bridge has its own payload model.
Payloads are validated here, at the boundary, so the dispatcher only ever
moves plain, already-validated dicts.
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, model_validator

from app.errors import ValidationError
from app.schemas.messages import validation_details

ACK_NAMES = ["ERROR", "PENDING", "SERVER", "DEVICE", "READ", "PLAYED"]


class EventPayload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class QrPayload(EventPayload):
    qr: str


class ReadyPayload(EventPayload):
    clientInfo: dict[str, Any] | None = None


class AuthenticatedPayload(EventPayload):
    pass


class AuthFailurePayload(EventPayload):
    message: str


class DisconnectedPayload(EventPayload):
    reason: str


class MessagePayload(EventPayload):
    id: str
    from_: str = Field(alias="from")
    to: str
    body: str = ""
    type: str = "chat"
    timestamp: int
    hasMedia: bool = False
    isGroup: bool = False
    author: str | None = None

    @model_validator(mode="after")
    def derive_is_group(self):
        if self.from_.endswith("@g.us"):
            self.isGroup = True
        return self


class MessageCreatePayload(EventPayload):
    id: str
    from_: str = Field(alias="from")
    to: str
    body: str = ""
    type: str = "chat"
    timestamp: int


class MessageAckPayload(EventPayload):
    id: str
    ack: int
    ackName: str | None = None

    @model_validator(mode="after")
    def derive_ack_name(self):
        if self.ackName is None:
            self.ackName = ACK_NAMES[self.ack] if 0 <= self.ack < len(ACK_NAMES) else "UNKNOWN"
        return self


class MessageReactionPayload(EventPayload):
    id: str
    messageId: str
    reaction: str
    senderId: str
    timestamp: int | None = None


class GroupChangePayload(EventPayload):
    id: str
    chatId: str
    author: str | None = None
    recipientIds: list[str] = Field(default_factory=list)


class CallPayload(EventPayload):
    id: str
    from_: str = Field(alias="from")
    isVideo: bool = False
    isGroup: bool = False


EVENT_SCHEMAS: dict[str, type[EventPayload]] = {
    "qr": QrPayload,
    "ready": ReadyPayload,
    "authenticated": AuthenticatedPayload,
    "auth_failure": AuthFailurePayload,
    "disconnected": DisconnectedPayload,
    "message": MessagePayload,
    "message_create": MessageCreatePayload,
    "message_ack": MessageAckPayload,
    "message_reaction": MessageReactionPayload,
    "group_join": GroupChangePayload,
    "group_leave": GroupChangePayload,
    "group_update": GroupChangePayload,
    "call": CallPayload,
}


class EventEnvelope(BaseModel):
    """Request body for /api/events."""
    eventKind: str
    payload: dict[str, Any] = Field(default_factory=dict)


def validate_event(event_kind: str, payload: dict[str, Any]) -> dict[str, Any]:
    """
    Validate a payload against its event kind's schema.

    Returns:
        The normalised payload as JSON-compatible data

    Raises:
        ValidationError: Unknown event kind or invalid payload
    """
    schema = EVENT_SCHEMAS.get(event_kind)
    if schema is None:
        raise ValidationError(
            f"Unknown event kind: {event_kind}",
            details=[{"field": "eventKind", "message": f"must be one of {sorted(EVENT_SCHEMAS)}"}]
        )
    try:
        model = schema.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(
            "Event payload validation failed",
            details=validation_details(e, prefix="payload.")
        ) from e
    return model.model_dump(mode="json", by_alias=True)
