"""Event id and type resolution for inbound payloads.

Providers that send a stable id get it used verbatim. For payloads without
one, the id is derived from the raw body so byte-identical redeliveries map
to the same stored event.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from typing import Any

FALLBACK_ID_PREFIX = "evt_"
FALLBACK_ID_HEX_LENGTH = 24

ID_FIELDS = ("id", "event_id", "eventId")
TYPE_FIELDS = ("type", "event_type", "eventType")


def _first_field(payload: Any, fields: tuple[str, ...]) -> str | None:
    """Return the first present field if it is a non-empty string.

    Only the first field that is present (not None) is considered, so an
    ``id`` of the wrong type is not rescued by a later ``event_id``.
    """
    if not isinstance(payload, Mapping):
        return None
    for name in fields:
        candidate = payload.get(name)
        if candidate is None:
            continue
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
        return None
    return None


def fallback_event_id(raw_body: bytes | str) -> str:
    """Deterministic id derived from the raw request body."""
    data = raw_body if isinstance(raw_body, bytes) else raw_body.encode("utf-8")
    digest = hashlib.sha256(data).hexdigest()
    return f"{FALLBACK_ID_PREFIX}{digest[:FALLBACK_ID_HEX_LENGTH]}"


def extract_event_id(payload: Any, raw_body: bytes | str) -> str:
    """Resolve the event id for an inbound webhook.

    Args:
        payload: Parsed JSON payload.
        raw_body: Raw request body, used for the fallback digest.

    Returns:
        The payload's ``id``/``event_id``/``eventId`` (trimmed), or a
        ``evt_``-prefixed digest of the body.
    """
    return _first_field(payload, ID_FIELDS) or fallback_event_id(raw_body)


def extract_event_type(payload: Any) -> str | None:
    """Resolve the event type from ``type``/``event_type``/``eventType``."""
    return _first_field(payload, TYPE_FIELDS)
