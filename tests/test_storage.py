"""Tests for the event store and its durable mirror."""

from __future__ import annotations

import asyncio
import json
import threading
import time
from datetime import UTC, datetime

import pytest

from hookrelay.exceptions import StorageError
from hookrelay.storage import EventStore


class TestAddIfAbsent:
    """Tests for insertion and deduplication."""

    def test_creates_pending_event(self, store_path):
        """New events start pending with no attempts and are due now."""
        store = EventStore(store_path)
        event, created = store.add_if_absent("evt_1", type="order.created", payload={"a": 1})

        assert created is True
        assert event.status == "pending"
        assert event.attempt_count == 0
        assert event.next_attempt_at == event.received_at
        assert event.delivered_at is None
        assert len(store) == 1
        assert "evt_1" in store

    def test_duplicate_returns_existing_untouched(self, store_path):
        """A known id returns the stored record without resetting it."""
        store = EventStore(store_path)
        event, _ = store.add_if_absent("evt_1", payload={"v": 1})
        event.begin_attempt()
        event.status = "retrying"

        again, created = store.add_if_absent("evt_1", payload={"v": 2})

        assert created is False
        assert again is event
        assert again.attempt_count == 1
        assert again.status == "retrying"
        assert again.payload == {"v": 1}
        assert len(store) == 1


class TestLoad:
    """Tests for loading the snapshot at startup."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, store_path):
        store = EventStore(store_path)
        assert await store.load() == 0
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_malformed_json_is_empty(self, store_path):
        """Corrupt content must not crash startup."""
        store_path.write_text("{not json", encoding="utf-8")
        store = EventStore(store_path)
        assert await store.load() == 0
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_non_array_is_ignored(self, store_path):
        store_path.write_text(json.dumps({"id": "evt_1"}), encoding="utf-8")
        store = EventStore(store_path)
        assert await store.load() == 0

    @pytest.mark.asyncio
    async def test_invalid_rows_are_skipped(self, store_path):
        """Rows without a string id or with bad fields are dropped individually."""
        rows = [
            {"id": "evt_ok", "received_at": "2024-01-01T00:00:00+00:00"},
            {"id": 5},
            "junk",
            {"id": "evt_bad", "status": "exploded"},
        ]
        store_path.write_text(json.dumps(rows), encoding="utf-8")
        store = EventStore(store_path)

        assert await store.load() == 1
        assert store.get("evt_ok") is not None
        assert store.get("evt_bad") is None

    @pytest.mark.asyncio
    async def test_save_then_load_preserves_fields(self, store_path):
        """Every field survives a restart."""
        store = EventStore(store_path)
        event, _ = store.add_if_absent("evt_1", type="t", payload={"nested": [1, 2]})
        event.begin_attempt()
        event.mark_delivered(datetime(2024, 5, 1, 12, 0, tzinfo=UTC))
        await store.save()

        reloaded = EventStore(store_path)
        await reloaded.load()
        restored = reloaded.get("evt_1")

        assert restored is not None
        assert restored.model_dump() == event.model_dump()


class TestSave:
    """Tests for serialized persistence."""

    @pytest.mark.asyncio
    async def test_writes_full_snapshot_as_array(self, store_path):
        store = EventStore(store_path)
        store.add_if_absent("evt_1")
        store.add_if_absent("evt_2")
        await store.save()

        document = store_path.read_text(encoding="utf-8")
        assert document.endswith("\n")
        rows = json.loads(document)
        assert [row["id"] for row in rows] == ["evt_1", "evt_2"]
        assert set(rows[0]) == {
            "id",
            "type",
            "payload",
            "received_at",
            "status",
            "attempt_count",
            "last_error",
            "next_attempt_at",
            "last_attempt_at",
            "delivered_at",
        }

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path):
        store = EventStore(tmp_path / "nested" / "dir" / "events.json")
        store.add_if_absent("evt_1")
        await store.save()
        assert (tmp_path / "nested" / "dir" / "events.json").exists()

    @pytest.mark.asyncio
    async def test_writes_never_overlap(self, store_path, monkeypatch):
        """Concurrent saves run one at a time, in call order."""
        store = EventStore(store_path)
        original_write = store._write
        active = 0
        max_active = 0
        order: list[int] = []
        guard = threading.Lock()

        def slow_write(document: str) -> None:
            nonlocal active, max_active
            with guard:
                active += 1
                max_active = max(max_active, active)
            time.sleep(0.01)
            order.append(len(json.loads(document)))
            original_write(document)
            with guard:
                active -= 1

        monkeypatch.setattr(store, "_write", slow_write)

        async def add_and_save(i: int) -> None:
            store.add_if_absent(f"evt_{i}")
            await store.save()

        await asyncio.gather(*(add_and_save(i) for i in range(5)))

        assert max_active == 1
        assert order == sorted(order)
        assert len(json.loads(store_path.read_text(encoding="utf-8"))) == 5

    @pytest.mark.asyncio
    async def test_failed_write_raises_and_later_writes_proceed(self, store_path, monkeypatch):
        """A failed write surfaces as StorageError without blocking the queue."""
        store = EventStore(store_path)
        original_write = store._write
        calls = 0

        def flaky_write(document: str) -> None:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise OSError("disk full")
            original_write(document)

        monkeypatch.setattr(store, "_write", flaky_write)
        store.add_if_absent("evt_1")

        with pytest.raises(StorageError, match="disk full"):
            await store.save()

        await store.save()
        assert json.loads(store_path.read_text(encoding="utf-8"))[0]["id"] == "evt_1"

    @pytest.mark.asyncio
    async def test_flush_waits_for_in_flight_write(self, store_path, monkeypatch):
        store = EventStore(store_path)
        original_write = store._write
        finished = threading.Event()

        def slow_write(document: str) -> None:
            time.sleep(0.05)
            original_write(document)
            finished.set()

        monkeypatch.setattr(store, "_write", slow_write)
        store.add_if_absent("evt_1")

        save_task = asyncio.create_task(store.save())
        await asyncio.sleep(0)
        await store.flush()

        assert finished.is_set()
        await save_task
