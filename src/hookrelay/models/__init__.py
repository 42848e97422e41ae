"""Data models for hookrelay.

Stored entity:
    - WebhookEvent: An inbound event and its delivery state

Operation results:
    - ReceiveResult: Outcome of ingesting an inbound webhook
    - DeliveryOutcome: Outcome of one delivery attempt
    - ReplayResult, EventPage, GatewayInfo, RelayStatus: Admin surface results
"""

from .event import (
    ACTIVE_STATUSES,
    ALL_EVENT_STATUSES,
    MAX_ERROR_LENGTH,
    EventStatus,
    WebhookEvent,
    utc_now,
)
from .results import (
    DeliveryOutcome,
    EventPage,
    GatewayInfo,
    ReceiveOutcome,
    ReceiveResult,
    RelayStatus,
    ReplayResult,
)

__all__ = [
    # Stored entity
    "ACTIVE_STATUSES",
    "ALL_EVENT_STATUSES",
    "EventStatus",
    "MAX_ERROR_LENGTH",
    "WebhookEvent",
    "utc_now",
    # Results
    "DeliveryOutcome",
    "EventPage",
    "GatewayInfo",
    "ReceiveOutcome",
    "ReceiveResult",
    "RelayStatus",
    "ReplayResult",
]
