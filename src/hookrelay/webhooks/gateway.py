"""Outbound delivery of relayed events to the downstream gateway."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from hookrelay.models import utc_now

if TYPE_CHECKING:
    from hookrelay.models import WebhookEvent

logger = logging.getLogger(__name__)

EVENT_ID_HEADER = "x-relay-event-id"
EVENT_TYPE_HEADER = "x-relay-event-type"
MAX_BODY_EXCERPT = 200


@dataclass(frozen=True)
class GatewayResult:
    """Outcome of one gateway call.

    Attributes:
        ok: True for any 2xx response.
        status_code: HTTP status if a response was received.
        error: Failure description for non-2xx responses and transport errors.
    """

    ok: bool
    status_code: int | None = None
    error: str | None = None


class GatewayClient:
    """Posts relay envelopes to the configured gateway.

    Non-2xx responses and transport errors are both reported as failures;
    the caller does not distinguish between them.

    Example:
        ```python
        client = GatewayClient("https://gateway.internal/events", token="secret")
        result = await client.send(event)
        if not result.ok:
            print(result.error)
        ```
    """

    def __init__(
        self,
        url: str | None = None,
        token: str | None = None,
        timeout_seconds: float = 10.0,
        source: str = "hookrelay",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the gateway client.

        Args:
            url: Gateway endpoint. Delivery is disabled while unset.
            token: Optional bearer token.
            timeout_seconds: HTTP request timeout.
            source: Value of the envelope's ``source`` field.
            transport: Optional httpx transport (used to stub the gateway in tests).
        """
        self._url = (url or "").strip()
        self._token = (token or "").strip()
        self._timeout = timeout_seconds
        self._source = source
        self._transport = transport

    @property
    def url(self) -> str | None:
        return self._url or None

    @property
    def configured(self) -> bool:
        return bool(self._url)

    def configure(self, url: str | None = None, token: str | None = None) -> None:
        """Update destination and credential at runtime.

        Only the values provided are changed; an empty string clears them.
        """
        if url is not None:
            self._url = url.strip()
        if token is not None:
            self._token = token.strip()

    def build_envelope(self, event: WebhookEvent) -> dict[str, Any]:
        return {
            "source": self._source,
            "relayed_at": utc_now().isoformat(),
            "event_id": event.id,
            "event_type": event.type,
            "event": event.payload,
        }

    def build_headers(self, event: WebhookEvent) -> dict[str, str]:
        headers = {"content-type": "application/json"}
        if self._token:
            headers["authorization"] = f"Bearer {self._token}"
        headers[EVENT_ID_HEADER] = event.id
        if event.type:
            headers[EVENT_TYPE_HEADER] = event.type
        return headers

    async def send(self, event: WebhookEvent) -> GatewayResult:
        """Deliver one event to the gateway.

        Args:
            event: Event to relay.

        Returns:
            GatewayResult describing success or the failure reason.
        """
        if not self._url:
            return GatewayResult(ok=False, error="gateway_not_configured")

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._url,
                    json=self.build_envelope(event),
                    headers=self.build_headers(event),
                )
        except httpx.TimeoutException as e:
            logger.warning("Gateway request timed out for %s: %s", event.id, e)
            return GatewayResult(ok=False, error=f"Request timeout: {e}".rstrip(": "))
        except httpx.HTTPError as e:
            logger.warning("Gateway request failed for %s: %s", event.id, e)
            return GatewayResult(ok=False, error=str(e) or type(e).__name__)
        except Exception as e:
            logger.exception("Gateway delivery error for %s: %s", event.id, e)
            return GatewayResult(ok=False, error=f"Unexpected error: {e}")

        if response.is_success:
            logger.debug("Gateway accepted %s (status %d)", event.id, response.status_code)
            return GatewayResult(ok=True, status_code=response.status_code)

        body = response.text[:MAX_BODY_EXCERPT] if response.text else ""
        error = f"HTTP {response.status_code} {response.reason_phrase}".rstrip()
        if body:
            error = f"{error}: {body}"
        return GatewayResult(ok=False, status_code=response.status_code, error=error)
