"""Result models returned by relay operations."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .event import EventStatus, WebhookEvent

ReceiveOutcome = Literal["unauthorized", "bad_request", "duplicate", "accepted"]

_OUTCOME_STATUS_CODES: dict[str, int] = {
    "unauthorized": 401,
    "bad_request": 400,
    "duplicate": 200,
    "accepted": 202,
}


class ReceiveResult(BaseModel):
    """Outcome of ingesting one inbound webhook.

    Attributes:
        outcome: unauthorized, bad_request, duplicate or accepted.
        event_id: Stored or derived event id (duplicate/accepted only).
        status: Current status of the stored event (duplicate/accepted only).
        error: Error code for rejected requests.
        reason: Verifier reason for unauthorized requests.
    """

    model_config = ConfigDict(extra="forbid")

    outcome: ReceiveOutcome
    event_id: str | None = None
    status: EventStatus | None = None
    error: str | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in ("duplicate", "accepted")

    @property
    def http_status(self) -> int:
        return _OUTCOME_STATUS_CODES[self.outcome]

    def to_body(self) -> dict[str, Any]:
        """Render the response body sent back to the webhook sender."""
        if self.outcome == "unauthorized":
            return {"ok": False, "error": self.error, "reason": self.reason}
        if self.outcome == "bad_request":
            return {"ok": False, "error": self.error}
        body: dict[str, Any] = {"ok": True, "event_id": self.event_id, "status": self.status}
        if self.outcome == "duplicate":
            body["duplicate"] = True
        else:
            body["accepted"] = True
        return body


class DeliveryOutcome(BaseModel):
    """Result of a single delivery attempt (or of declining to attempt)."""

    model_config = ConfigDict(extra="forbid")

    ok: bool
    status: EventStatus | None = None
    error: str | None = None


class ReplayResult(BaseModel):
    """Result of a manual replay: the event after the attempt, and the attempt itself."""

    model_config = ConfigDict(extra="forbid")

    ok: bool = True
    event: WebhookEvent
    relay: DeliveryOutcome


class EventPage(BaseModel):
    """A page of events, most recently received first."""

    model_config = ConfigDict(extra="forbid")

    total: int = Field(ge=0, description="Events matching the filter")
    limit: int
    offset: int
    events: list[WebhookEvent] = Field(default_factory=list)


class GatewayInfo(BaseModel):
    """Gateway destination after a reconfiguration."""

    model_config = ConfigDict(extra="forbid")

    ok: bool = True
    gateway_configured: bool
    gateway_url: str | None = None


class RelayStatus(BaseModel):
    """Point-in-time snapshot of the relay."""

    model_config = ConfigDict(extra="forbid")

    running: bool
    webhook_path: str
    webhook_host: str
    webhook_port: int
    gateway_configured: bool
    gateway_url: str | None = None
    events_total: int
    retry_max: int
    retry_base_seconds: float
    store_path: str


__all__ = [
    "DeliveryOutcome",
    "EventPage",
    "GatewayInfo",
    "ReceiveOutcome",
    "ReceiveResult",
    "RelayStatus",
    "ReplayResult",
]
