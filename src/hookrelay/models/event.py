"""Stored webhook event model.

A WebhookEvent is created once at ingestion and then mutated in place by
delivery attempts. Transitions:

    pending  -> delivered | retrying | dead_letter
    retrying -> delivered | retrying | dead_letter
    delivered, dead_letter -> pending   (manual replay only)
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

EventStatus = Literal["pending", "retrying", "delivered", "dead_letter"]

ALL_EVENT_STATUSES: list[EventStatus] = ["pending", "retrying", "delivered", "dead_letter"]

# Statuses the scheduler still owns
ACTIVE_STATUSES: frozenset[str] = frozenset({"pending", "retrying"})

MAX_ERROR_LENGTH = 500


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class WebhookEvent(BaseModel):
    """An inbound webhook event and its delivery state.

    Attributes:
        id: Event identifier, from the payload or derived from the raw body.
        type: Optional event classification from the payload.
        payload: Parsed JSON body as received.
        received_at: When the event was first ingested.
        status: Delivery status.
        attempt_count: Number of delivery attempts made so far.
        last_error: Most recent failure description, cleared on delivery.
        next_attempt_at: When the scheduler may next attempt delivery.
        last_attempt_at: When the most recent attempt started.
        delivered_at: When the event was first delivered.
    """

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    id: str = Field(min_length=1, description="Event identifier")
    type: str | None = Field(default=None, description="Event classification")
    payload: Any = Field(default=None, description="Parsed JSON payload")
    received_at: datetime = Field(default_factory=utc_now, description="First ingestion time")
    status: EventStatus = Field(default="pending", description="Delivery status")
    attempt_count: int = Field(default=0, ge=0, description="Delivery attempts made")
    last_error: str | None = Field(default=None, description="Last failure description")
    next_attempt_at: datetime = Field(
        default_factory=utc_now,
        description="Earliest time of the next scheduled attempt",
    )
    last_attempt_at: datetime | None = Field(default=None, description="Most recent attempt")
    delivered_at: datetime | None = Field(default=None, description="First successful delivery")

    @property
    def is_terminal(self) -> bool:
        return self.status in ("delivered", "dead_letter")

    def is_due(self, now: datetime) -> bool:
        """Check whether the scheduler should attempt this event at ``now``."""
        return self.status in ACTIVE_STATUSES and self.next_attempt_at <= now

    def begin_attempt(self, now: datetime | None = None) -> WebhookEvent:
        """Record the start of a delivery attempt."""
        self.attempt_count += 1
        self.last_attempt_at = now or utc_now()
        return self

    def mark_delivered(self, now: datetime | None = None) -> WebhookEvent:
        """Mark the event as delivered (terminal)."""
        self.status = "delivered"
        self.last_error = None
        self.delivered_at = now or utc_now()
        return self

    def mark_retrying(
        self, error: str, delay: timedelta, now: datetime | None = None
    ) -> WebhookEvent:
        """Schedule another attempt after ``delay``."""
        self.status = "retrying"
        self.last_error = error[:MAX_ERROR_LENGTH]
        self.next_attempt_at = (now or utc_now()) + delay
        return self

    def mark_dead_letter(self, error: str) -> WebhookEvent:
        """Stop automatic delivery (terminal)."""
        self.status = "dead_letter"
        self.last_error = error[:MAX_ERROR_LENGTH]
        return self

    def reset_for_replay(self, now: datetime | None = None) -> WebhookEvent:
        """Return the event to pending for a manual replay.

        attempt_count is kept so the attempt history survives replays.
        delivered_at is cleared to keep it consistent with the status.
        """
        self.status = "pending"
        self.last_error = None
        self.delivered_at = None
        self.next_attempt_at = now or utc_now()
        return self


__all__ = [
    "ACTIVE_STATUSES",
    "ALL_EVENT_STATUSES",
    "EventStatus",
    "MAX_ERROR_LENGTH",
    "WebhookEvent",
    "utc_now",
]
