"""
Request models for outbound messages.
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

# Bare number, or a user (@c.us) or group (@g.us) chat id
PHONE_PATTERN = r"^[0-9]+(@[cg]\.us)?$"
CHAT_SUFFIX = "@c.us"


class BulkMessageItem(BaseModel):
    """One item of a bulk send request."""
    model_config = ConfigDict(extra="ignore")

    number: str = Field(pattern=PHONE_PATTERN)
    message: str = Field(min_length=1)
    delay: int = Field(default=0, ge=0)
    priority: int = 0
    options: dict[str, Any] = Field(default_factory=dict)

    @property
    def chat_id(self) -> str:
        """Recipient in chat-id form; bare numbers get the user suffix."""
        return self.number if "@" in self.number else f"{self.number}{CHAT_SUFFIX}"


class BulkMessagesRequest(BaseModel):
    """Request body for /api/send-bulk-messages. Items are validated by the coordinator."""
    messages: list[dict[str, Any]]


def validation_details(exc: PydanticValidationError, prefix: str = "") -> list[dict]:
    """Flatten pydantic errors into [{field, message}] entries."""
    details = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"])
        details.append({
            "field": f"{prefix}{field}" if prefix else field,
            "message": error["msg"],
        })
    return details
