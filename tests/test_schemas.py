"""Tests for event payload validation."""

import pytest

from app.errors import ValidationError
from app.schemas.events import EVENT_SCHEMAS, validate_event


class TestValidateEvent:

    def test_message_keeps_wire_field_names(self):
        payload = validate_event("message", {
            "id": "false_111@c.us_ABC",
            "from": "111@c.us",
            "to": "222@c.us",
            "body": "hello",
            "timestamp": 1767225600,
        })

        assert payload["from"] == "111@c.us"
        assert "from_" not in payload
        assert payload["isGroup"] is False
        assert payload["type"] == "chat"

    def test_group_message_is_flagged(self):
        payload = validate_event("message", {
            "id": "m1",
            "from": "123@g.us",
            "to": "222@c.us",
            "timestamp": 1,
            "author": "111@c.us",
        })

        assert payload["isGroup"] is True

    @pytest.mark.parametrize("ack, name", [(0, "ERROR"), (3, "DEVICE"), (4, "READ"), (9, "UNKNOWN")])
    def test_ack_name_is_derived(self, ack, name):
        payload = validate_event("message_ack", {"id": "m1", "ack": ack})

        assert payload["ackName"] == name

    def test_extra_fields_pass_through(self):
        payload = validate_event("qr", {"qr": "2@abc", "attempt": 2})

        assert payload == {"qr": "2@abc", "attempt": 2}

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_event("presence_update", {})

        assert exc_info.value.details[0]["field"] == "eventKind"

    def test_missing_field_reported_with_path(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_event("disconnected", {})

        assert exc_info.value.details == [
            {"field": "payload.reason", "message": "Field required"}
        ]

    def test_every_group_event_shares_schema(self):
        assert EVENT_SCHEMAS["group_join"] is EVENT_SCHEMAS["group_leave"] is EVENT_SCHEMAS["group_update"]
