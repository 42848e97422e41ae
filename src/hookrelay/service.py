"""Relay service: ingestion, query, replay and reconfiguration.

This module provides RelayService, which combines the signature verifier,
event identity resolver, event store and delivery worker behind one
interface used by the HTTP layer.

Example:
    ```python
    from hookrelay.service import RelayService

    async with RelayService.create() as relay:
        result = await relay.receive(raw_body, headers)
        print(result.outcome, result.event_id)

        page = relay.list_events(status="dead_letter", limit=20)
        for event in page.events:
            await relay.replay_event(event.id)
    ```
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from hookrelay.config import Settings
from hookrelay.exceptions import NotFoundError, ValidationError
from hookrelay.logging import get_logger
from hookrelay.models import (
    DeliveryOutcome,
    EventPage,
    EventStatus,
    GatewayInfo,
    ReceiveResult,
    RelayStatus,
    ReplayResult,
    WebhookEvent,
)
from hookrelay.storage import EventStore
from hookrelay.webhooks import (
    DeliveryWorker,
    GatewayClient,
    extract_event_id,
    extract_event_type,
    verify_webhook_signature,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from hookrelay.webhooks.signature import HeaderValue

logger = get_logger(__name__)

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 500
MAX_PAGE_OFFSET = 10_000


def clamp(value: Any, lower: int, upper: int) -> int:
    """Clamp a possibly non-numeric value into [lower, upper].

    Values that are not finite numbers fall back to ``lower``.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return lower
    if not math.isfinite(number):
        return lower
    return min(upper, max(lower, int(number)))


@dataclass
class RelayService:
    """Webhook relay engine.

    Provides:
    - receive(): verify, deduplicate and store an inbound webhook
    - list_events() / get_event(): query the store
    - replay_event(): force one more delivery attempt
    - set_gateway(): change the downstream destination at runtime
    - get_status(): snapshot of the relay

    Attributes:
        settings: Configuration settings.
        store: Event store.
        gateway: Gateway client.
        worker: Delivery worker.
    """

    settings: Settings
    store: EventStore
    gateway: GatewayClient
    worker: DeliveryWorker = field(init=False)

    def __post_init__(self) -> None:
        self.worker = DeliveryWorker(
            self.store,
            self.gateway,
            retry_base_seconds=self.settings.retry_base_seconds,
            retry_max=self.settings.retry_max,
            interval_seconds=self.settings.worker_interval_seconds,
        )

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> RelayService:
        """Create a RelayService with default dependencies.

        Args:
            settings: Optional settings. Uses environment if None.
            transport: Optional httpx transport for the gateway client.

        Returns:
            Configured RelayService instance (not yet started).
        """
        if settings is None:
            settings = Settings()

        return cls(
            settings=settings,
            store=EventStore(settings.store_path),
            gateway=GatewayClient(
                url=settings.gateway_url,
                token=settings.gateway_auth_token,
                timeout_seconds=settings.gateway_timeout_seconds,
                source=settings.source_tag,
                transport=transport,
            ),
        )

    async def start(self) -> None:
        """Load the durable store and start the delivery worker."""
        await self.store.load()
        self.worker.start()
        logger.info(
            "Relay started",
            events=len(self.store),
            gateway_configured=self.gateway.configured,
            store_path=str(self.store.path),
        )

    async def stop(self) -> None:
        """Stop the worker and wait for pending store writes."""
        await self.worker.stop()
        await self.store.flush()
        logger.info("Relay stopped")

    async def __aenter__(self) -> RelayService:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.stop()

    async def receive(
        self,
        raw_body: bytes | str,
        headers: Mapping[str, HeaderValue],
    ) -> ReceiveResult:
        """Ingest one inbound webhook.

        Verifies the signature, parses the body, resolves the event id and
        stores the event if it is new. Delivery is only scheduled; this call
        does not wait for it.

        Args:
            raw_body: Request body exactly as received.
            headers: Request headers.

        Returns:
            ReceiveResult with outcome unauthorized, bad_request, duplicate or accepted.

        Raises:
            StorageError: If a new event cannot be persisted.
        """
        verdict = verify_webhook_signature(
            raw_body,
            headers,
            secret=self.settings.webhook_secret,
            allow_unsigned=self.settings.allow_unsigned,
            max_skew_ms=self.settings.max_skew_ms,
            signature_header=self.settings.signature_header,
            timestamp_header=self.settings.timestamp_header,
        )
        if not verdict.ok:
            logger.warning("Webhook signature rejected", reason=verdict.reason)
            return ReceiveResult(
                outcome="unauthorized", error="invalid_signature", reason=verdict.reason
            )

        try:
            payload = json.loads(raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Webhook body is not valid JSON")
            return ReceiveResult(outcome="bad_request", error="invalid_json")

        event_id = extract_event_id(payload, raw_body)
        event, created = self.store.add_if_absent(
            event_id,
            type=extract_event_type(payload),
            payload=payload,
        )
        if not created:
            logger.info("Duplicate webhook ignored", event_id=event_id, status=event.status)
            return ReceiveResult(outcome="duplicate", event_id=event_id, status=event.status)

        await self.store.save()
        self.worker.trigger()
        logger.info("Webhook accepted", event_id=event_id, event_type=event.type)
        return ReceiveResult(outcome="accepted", event_id=event_id, status=event.status)

    def list_events(
        self,
        status: EventStatus | None = None,
        limit: Any = DEFAULT_PAGE_LIMIT,
        offset: Any = 0,
    ) -> EventPage:
        """List events, most recently received first.

        Args:
            status: Only return events in this status.
            limit: Page size, clamped to [1, 500].
            offset: Events to skip, clamped to [0, 10000].

        Returns:
            EventPage with the total matching count and the requested slice.
        """
        limit = clamp(DEFAULT_PAGE_LIMIT if limit is None else limit, 1, MAX_PAGE_LIMIT)
        offset = clamp(0 if offset is None else offset, 0, MAX_PAGE_OFFSET)

        matching = [event for event in self.store if status is None or event.status == status]
        matching.sort(key=lambda event: event.received_at, reverse=True)

        return EventPage(
            total=len(matching),
            limit=limit,
            offset=offset,
            events=[event.model_copy(deep=True) for event in matching[offset : offset + limit]],
        )

    def get_event(self, event_id: str) -> WebhookEvent | None:
        """Get a snapshot of one event, or None if it is unknown."""
        event = self.store.get(event_id)
        return event.model_copy(deep=True) if event is not None else None

    async def relay_event(self, event_id: str) -> DeliveryOutcome:
        """Make one delivery attempt for an event now."""
        return await self.worker.relay_event(event_id)

    async def process_due_events(self) -> int:
        """Run one delivery scan immediately."""
        return await self.worker.process_due_events()

    async def replay_event(self, event_id: str) -> ReplayResult:
        """Return an event to pending and attempt delivery once.

        attempt_count is not reset: a dead-lettered event that fails its
        replay goes straight back to dead_letter.

        Args:
            event_id: ID of the event to replay.

        Returns:
            ReplayResult with the event after the attempt and the attempt outcome.

        Raises:
            NotFoundError: If the event does not exist.
            StorageError: If the reset cannot be persisted.
        """
        outcome = await self.worker.replay_event(event_id)
        event = self.store.get(event_id)
        if outcome is None or event is None:
            raise NotFoundError("event", event_id)

        logger.info(
            "Event replayed",
            event_id=event_id,
            status=event.status,
            attempts=event.attempt_count,
        )
        return ReplayResult(event=event.model_copy(deep=True), relay=outcome)

    def set_gateway(self, url: str | None = None, token: str | None = None) -> GatewayInfo:
        """Update the gateway destination and credential at runtime.

        Only values that are provided are changed. Values are trimmed; an
        empty URL disables delivery.

        Raises:
            ValidationError: If the URL is not an http(s) URL.
        """
        if url is not None and url.strip():
            try:
                scheme = httpx.URL(url.strip()).scheme
            except httpx.InvalidURL as e:
                raise ValidationError("gateway_url", str(e)) from e
            if scheme not in ("http", "https"):
                raise ValidationError("gateway_url", "must be an http or https URL")

        self.gateway.configure(url=url, token=token)
        logger.info(
            "Gateway updated",
            gateway_url=self.gateway.url,
            token_changed=token is not None,
        )
        if self.gateway.configured:
            self.worker.trigger()
        return GatewayInfo(gateway_configured=self.gateway.configured, gateway_url=self.gateway.url)

    def get_status(self) -> RelayStatus:
        """Point-in-time snapshot of the relay."""
        return RelayStatus(
            running=self.worker.running,
            webhook_path=self.settings.webhook_path,
            webhook_host=self.settings.listen_host,
            webhook_port=self.settings.listen_port,
            gateway_configured=self.gateway.configured,
            gateway_url=self.gateway.url,
            events_total=len(self.store),
            retry_max=self.worker.retry_max,
            retry_base_seconds=self.worker.retry_base_seconds,
            store_path=str(self.store.path),
        )


__all__ = ["RelayService", "clamp"]
