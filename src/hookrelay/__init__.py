"""hookrelay: verified, durable webhook relay.

Receives webhooks from an upstream provider, authenticates them, records
each event exactly once, and forwards it to a downstream gateway with
exponential backoff and a dead-letter fallback.

Quick Start:
    from hookrelay.service import RelayService

    async with RelayService.create() as relay:
        result = await relay.receive(raw_body, headers)
        if result.outcome == "accepted":
            print(relay.get_event(result.event_id))

Event lifecycle:
    - pending: stored, waiting for its first delivery attempt
    - retrying: a delivery failed, another attempt is scheduled
    - delivered: the gateway accepted the event
    - dead_letter: attempts exhausted, replay required
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings

# Exceptions
from .exceptions import (
    ConfigurationError,
    NotFoundError,
    RelayError,
    StorageError,
    ValidationError,
)

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    logger,
    unbind_context,
)

# Models
from .models import EventStatus, ReceiveResult, WebhookEvent

__all__ = [
    # Version
    "__version__",
    # Configuration
    "Settings",
    # Exceptions
    "RelayError",
    "ValidationError",
    "NotFoundError",
    "StorageError",
    "ConfigurationError",
    # Logging
    "configure_logging",
    "get_logger",
    "logger",
    "bind_context",
    "clear_context",
    "unbind_context",
    # Models
    "EventStatus",
    "ReceiveResult",
    "WebhookEvent",
]
