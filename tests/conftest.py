"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import json
import sys
import time
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

# Add tests directory to path so helpers can be imported from test modules
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from hookrelay.config import Settings  # noqa: E402
from hookrelay.service import RelayService  # noqa: E402
from hookrelay.webhooks import compute_signature  # noqa: E402

SECRET = "secret123"
GATEWAY_URL = "http://gateway.test/events"


class StubGateway:
    """Scriptable downstream gateway backed by httpx.MockTransport.

    Responds with the queued status codes in order, then ``default``.
    Queued exceptions are raised instead of responding.
    """

    def __init__(
        self,
        responses: list[int | Exception] | None = None,
        default: int = 200,
    ) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses or [])
        self._default = default
        self.gate: asyncio.Event | None = None

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self._responses.pop(0) if self._responses else self._default
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, json={"ok": outcome < 400}, request=request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def bodies(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests]


def sign_headers(body: str | bytes, secret: str = SECRET, timestamp: str | None = None) -> dict:
    """Headers a provider would send for ``body``."""
    timestamp = timestamp or str(int(time.time()))
    return {
        "x-webhook-signature": compute_signature(body, timestamp, secret),
        "x-webhook-timestamp": timestamp,
    }


async def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "events.json"


@pytest.fixture
def make_settings(store_path: Path) -> Callable[..., Settings]:
    """Build Settings isolated from the environment's .env file."""

    def _make(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "webhook_secret": SECRET,
            "gateway_url": GATEWAY_URL,
            "store_path": str(store_path),
            "retry_base_seconds": 0.01,
            "retry_max": 5,
            "worker_interval_seconds": 0.02,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def make_service(
    make_settings: Callable[..., Settings],
) -> Callable[..., RelayService]:
    """Build a RelayService talking to a StubGateway."""

    def _make(stub: StubGateway | None = None, **overrides: object) -> RelayService:
        stub = stub or StubGateway()
        return RelayService.create(make_settings(**overrides), transport=stub.transport)

    return _make
