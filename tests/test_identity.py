"""Tests for event id and type resolution."""

import hashlib
import json

from hookrelay.webhooks.identity import (
    extract_event_id,
    extract_event_type,
    fallback_event_id,
)


class TestExtractEventId:
    """Tests for extract_event_id."""

    def test_uses_id_field(self):
        assert extract_event_id({"id": "evt_1"}, "{}") == "evt_1"

    def test_field_priority(self):
        """id wins over event_id, which wins over eventId."""
        assert extract_event_id({"event_id": "b", "eventId": "c"}, "{}") == "b"
        assert extract_event_id({"eventId": "c"}, "{}") == "c"
        assert extract_event_id({"id": "a", "event_id": "b", "eventId": "c"}, "{}") == "a"

    def test_trims_value(self):
        assert extract_event_id({"id": "  evt_9  "}, "{}") == "evt_9"

    def test_blank_or_non_string_falls_back(self):
        """Blank strings and non-strings do not count as ids."""
        body = '{"id": 42}'
        assert extract_event_id({"id": 42}, body) == fallback_event_id(body)
        assert extract_event_id({"id": "   "}, body) == fallback_event_id(body)

    def test_fallback_is_digest_of_raw_body(self):
        """Fallback ids are evt_ plus 24 hex chars of the body's SHA-256."""
        body = json.dumps({"hello": "world"})
        expected = "evt_" + hashlib.sha256(body.encode()).hexdigest()[:24]
        assert extract_event_id({"hello": "world"}, body) == expected

    def test_fallback_is_deterministic(self):
        """Byte-identical bodies map to the same id."""
        body = b'{"hello":"world"}'
        assert extract_event_id({}, body) == extract_event_id({}, body)
        assert extract_event_id({}, body) != extract_event_id({}, b'{"hello":"there"}')

    def test_non_object_payload_falls_back(self):
        assert extract_event_id(["id"], "[1]").startswith("evt_")
        assert extract_event_id("text", '"text"').startswith("evt_")
        assert extract_event_id(None, "null").startswith("evt_")


class TestExtractEventType:
    """Tests for extract_event_type."""

    def test_field_priority(self):
        assert extract_event_type({"type": "a", "event_type": "b"}) == "a"
        assert extract_event_type({"event_type": "b", "eventType": "c"}) == "b"
        assert extract_event_type({"eventType": " c "}) == "c"

    def test_missing_type(self):
        assert extract_event_type({}) is None
        assert extract_event_type({"type": ""}) is None
        assert extract_event_type([1, 2]) is None
