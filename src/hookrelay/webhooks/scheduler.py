"""Delivery worker: drives stored events through the retry state machine.

A background task scans the store every ``interval_seconds`` (or sooner
when ``trigger()`` is called), picks the events whose ``next_attempt_at``
has passed, and delivers them one at a time, oldest due first. Failed
attempts back off exponentially until ``retry_max`` attempts have been
made, after which the event is dead-lettered.

Every attempt, whether from a scan or a manual replay, runs under a
per-event lock, so an event never has two attempts in flight.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING

from hookrelay.logging import bind_context, get_logger, unbind_context
from hookrelay.models import DeliveryOutcome, utc_now

if TYPE_CHECKING:
    from hookrelay.models import WebhookEvent
    from hookrelay.storage import EventStore

    from .gateway import GatewayClient

logger = get_logger(__name__)


def compute_backoff(base_seconds: float, attempt_count: int) -> float:
    """Delay before the next attempt, in seconds.

    Keyed off the attempts already made: base, 2*base, 4*base, ...
    The result is not capped; ``retry_max`` bounds the number of attempts.
    """
    return base_seconds * (2 ** max(0, attempt_count - 1))


class DeliveryWorker:
    """Schedules and performs delivery attempts.

    Example:
        ```python
        worker = DeliveryWorker(store, gateway, retry_base_seconds=2.0, retry_max=8)
        worker.start()

        worker.trigger()  # scan now instead of waiting for the next tick
        outcome = await worker.relay_event("evt_123")

        await worker.stop()
        ```
    """

    def __init__(
        self,
        store: EventStore,
        gateway: GatewayClient,
        retry_base_seconds: float = 2.0,
        retry_max: int = 8,
        interval_seconds: float = 1.0,
    ) -> None:
        """Initialize the worker.

        Args:
            store: Event store holding the events to deliver.
            gateway: Client performing the outbound call.
            retry_base_seconds: Delay after the first failed attempt.
            retry_max: Attempts made before an event is dead-lettered.
            interval_seconds: Time between scheduled scans.
        """
        self._store = store
        self._gateway = gateway
        self._retry_base = retry_base_seconds
        self._retry_max = retry_max
        self._interval = interval_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._wake = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._stopping = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._stopping

    @property
    def retry_base_seconds(self) -> float:
        return self._retry_base

    @property
    def retry_max(self) -> int:
        return self._retry_max

    def start(self) -> None:
        """Launch the background scan loop."""
        if self.running:
            return
        self._stopping = False
        self._task = asyncio.create_task(self._run(), name="hookrelay-delivery-worker")

    async def stop(self) -> None:
        """Stop the scan loop after the attempt currently in flight."""
        self._stopping = True
        self._wake.set()
        if self._task is not None:
            await self._task
            self._task = None

    def trigger(self) -> None:
        """Request a scan without waiting for the next tick."""
        self._wake.set()

    async def _run(self) -> None:
        while not self._stopping:
            self._wake.clear()
            try:
                await self.process_due_events()
            except Exception:
                logger.exception("Delivery scan failed")
            if self._stopping:
                break
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            except TimeoutError:
                pass

    def _lock_for(self, event_id: str) -> asyncio.Lock:
        lock = self._locks.get(event_id)
        if lock is None:
            lock = self._locks[event_id] = asyncio.Lock()
        return lock

    def due_events(self) -> list[WebhookEvent]:
        """Events awaiting delivery whose next attempt time has passed, oldest first."""
        now = utc_now()
        due = [event for event in self._store if event.is_due(now)]
        due.sort(key=lambda event: event.next_attempt_at)
        return due

    async def process_due_events(self) -> int:
        """Deliver every due event sequentially.

        Returns:
            Number of delivery attempts made.
        """
        if not self._gateway.configured:
            return 0

        attempted = 0
        for event in self.due_events():
            if self._stopping or not self._gateway.configured:
                break
            if await self._deliver_if_due(event.id):
                attempted += 1
        return attempted

    async def _deliver_if_due(self, event_id: str) -> bool:
        async with self._lock_for(event_id):
            event = self._store.get(event_id)
            # Another path may have attempted it while we waited for the lock
            if event is None or not event.is_due(utc_now()):
                return False
            await self._attempt(event)
            return True

    async def relay_event(self, event_id: str) -> DeliveryOutcome:
        """Make one delivery attempt for an event regardless of its schedule.

        Args:
            event_id: ID of the stored event.

        Returns:
            DeliveryOutcome of the attempt. No attempt is made (and none is
            counted) when the event is unknown, already delivered or
            dead-lettered, or when no gateway is configured. Terminal events
            only go back to pending through replay_event.
        """
        async with self._lock_for(event_id):
            event = self._store.get(event_id)
            if event is None:
                return DeliveryOutcome(ok=False, error="not_found")
            if event.is_terminal:
                return DeliveryOutcome(ok=False, status=event.status, error="not_deliverable")
            if not self._gateway.configured:
                return DeliveryOutcome(
                    ok=False, status=event.status, error="gateway_not_configured"
                )
            return await self._attempt(event)

    async def replay_event(self, event_id: str) -> DeliveryOutcome | None:
        """Reset an event to pending and attempt it once, under its lock.

        Returns:
            DeliveryOutcome of the attempt, or None if the event is unknown.
        """
        async with self._lock_for(event_id):
            event = self._store.get(event_id)
            if event is None:
                return None
            event.reset_for_replay()
            await self._store.save()
            if not self._gateway.configured:
                return DeliveryOutcome(
                    ok=False, status=event.status, error="gateway_not_configured"
                )
            return await self._attempt(event)

    async def _attempt(self, event: WebhookEvent) -> DeliveryOutcome:
        # Gateway, retry and dead-letter logs all carry the event id
        bind_context(event_id=event.id)
        try:
            event.begin_attempt()
            result = await self._gateway.send(event)

            if result.ok:
                event.mark_delivered()
                await self._store.save()
                logger.info(
                    "Event delivered",
                    event_type=event.type,
                    attempt=event.attempt_count,
                    status_code=result.status_code,
                )
                return DeliveryOutcome(ok=True, status=event.status)

            return await self._schedule_retry(event, result.error or "unknown error")
        finally:
            unbind_context("event_id")

    async def _schedule_retry(self, event: WebhookEvent, reason: str) -> DeliveryOutcome:
        if event.attempt_count >= self._retry_max:
            event.mark_dead_letter(reason)
            await self._store.save()
            logger.warning(
                "Event dead-lettered",
                attempts=event.attempt_count,
                error=event.last_error,
            )
            return DeliveryOutcome(ok=False, status=event.status, error=reason)

        delay = compute_backoff(self._retry_base, event.attempt_count)
        event.mark_retrying(reason, timedelta(seconds=delay))
        await self._store.save()
        logger.info(
            "Event scheduled for retry",
            attempt=event.attempt_count,
            delay_seconds=delay,
            next_attempt_at=event.next_attempt_at.isoformat(),
            error=event.last_error,
        )
        return DeliveryOutcome(ok=False, status=event.status, error=reason)
