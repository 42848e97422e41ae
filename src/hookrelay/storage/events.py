"""In-memory event store mirrored to a JSON file.

The store owns the id -> WebhookEvent map. Every mutation is followed by
``save()``, which rewrites the whole snapshot. Writes are serialized through
a single lock so they land in call order and never interleave on disk.
"""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from hookrelay.exceptions import StorageError
from hookrelay.logging import get_logger
from hookrelay.models import WebhookEvent, utc_now

logger = get_logger(__name__)


class EventStore:
    """Authoritative event map with a serialized durable mirror.

    Example:
        ```python
        store = EventStore("/var/lib/hookrelay/events.json")
        await store.load()

        event, created = store.add_if_absent("evt_1", type="order.created", payload={})
        if created:
            await store.save()
        ```
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        """Initialize the store.

        Args:
            path: JSON file holding the snapshot. Parent directories are
                created on first write.
        """
        self._path = Path(path)
        self._events: dict[str, WebhookEvent] = {}
        self._write_lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._events

    def __iter__(self) -> Iterator[WebhookEvent]:
        return iter(list(self._events.values()))

    def get(self, event_id: str) -> WebhookEvent | None:
        return self._events.get(event_id)

    def add_if_absent(
        self,
        event_id: str,
        type: str | None = None,
        payload: Any = None,
    ) -> tuple[WebhookEvent, bool]:
        """Insert a new pending event unless the id is already known.

        An existing record is returned untouched so its attempt history and
        retry state survive redeliveries from the sender.

        Returns:
            (event, created) where created is False for duplicates.
        """
        existing = self._events.get(event_id)
        if existing is not None:
            return existing, False

        now = utc_now()
        event = WebhookEvent(
            id=event_id,
            type=type,
            payload=payload,
            received_at=now,
            status="pending",
            attempt_count=0,
            next_attempt_at=now,
        )
        self._events[event_id] = event
        return event, True

    async def load(self) -> int:
        """Load the snapshot from disk, replacing the in-memory map.

        A missing file yields an empty store. Malformed JSON is logged and
        treated as empty; a well-formed document that is not an array is
        ignored. Rows that do not validate are skipped.

        Returns:
            Number of events loaded.
        """
        try:
            raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return 0
        except OSError as e:
            logger.error(
                "Could not read event store, starting empty",
                path=str(self._path),
                error=str(e),
            )
            return 0

        if not raw.strip():
            return 0

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(
                "Invalid event store JSON, starting with empty store",
                path=str(self._path),
                error=str(e),
            )
            return 0

        if not isinstance(parsed, list):
            logger.warning("Event store is not a JSON array, ignoring", path=str(self._path))
            return 0

        loaded: dict[str, WebhookEvent] = {}
        for row in parsed:
            if not isinstance(row, dict) or not isinstance(row.get("id"), str):
                continue
            try:
                event = WebhookEvent.model_validate(row)
            except PydanticValidationError as e:
                logger.warning("Skipping invalid stored event", event_id=row["id"], error=str(e))
                continue
            loaded[event.id] = event

        self._events = loaded
        logger.info("Event store loaded", path=str(self._path), events=len(loaded))
        return len(loaded)

    async def save(self) -> None:
        """Write the full snapshot to disk.

        Waits for any earlier write to finish first, whatever its outcome.
        The snapshot is taken once the lock is held, so it reflects every
        mutation made before the write starts.

        Raises:
            StorageError: If the file cannot be written.
        """
        async with self._write_lock:
            snapshot = [event.model_dump(mode="json") for event in self._events.values()]
            document = json.dumps(snapshot, indent=2) + "\n"
            try:
                await asyncio.to_thread(self._write, document)
            except OSError as e:
                logger.error("Event store write failed", path=str(self._path), error=str(e))
                raise StorageError(f"Failed to write event store {self._path}: {e}") from e

    async def flush(self) -> None:
        """Wait until any in-flight write has completed."""
        async with self._write_lock:
            return

    def _write(self, document: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        tmp_path.write_text(document, encoding="utf-8")
        os.replace(tmp_path, self._path)
