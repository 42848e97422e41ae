"""FastAPI routes for the inbound webhook and the admin surface."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from hookrelay.exceptions import NotFoundError
from hookrelay.logging import bind_context, clear_context
from hookrelay.models import (
    EventPage,
    EventStatus,
    GatewayInfo,
    RelayStatus,
    ReplayResult,
    WebhookEvent,
)
from hookrelay.service import RelayService

from .schemas import GatewayUpdateRequest, HealthResponse

router = APIRouter()

# Service instance (set by app lifespan)
_service: RelayService | None = None


def set_service(service: RelayService | None) -> None:
    """Set the global service instance."""
    global _service
    _service = service


async def get_service() -> RelayService:
    """Dependency to get the RelayService instance."""
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _service


ServiceDep = Annotated[RelayService, Depends(get_service)]


async def receive_webhook(request: Request, service: ServiceDep) -> JSONResponse:
    """Receive one inbound webhook.

    The raw body is passed through untouched so the signature is checked
    against the exact bytes the sender signed.
    """
    limit = service.settings.max_body_bytes
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        return JSONResponse(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            content={"ok": False, "error": "body_too_large"},
        )

    # Chunked uploads carry no length; stop reading once the limit is crossed
    received = bytearray()
    async for chunk in request.stream():
        received.extend(chunk)
        if len(received) > limit:
            return JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={"ok": False, "error": "body_too_large"},
            )

    bind_context(webhook_path=request.url.path)
    try:
        result = await service.receive(bytes(received), request.headers)
    finally:
        clear_context()
    return JSONResponse(status_code=result.http_status, content=result.to_body())


def register_webhook_route(app: FastAPI, path: str) -> None:
    """Mount the inbound webhook handler at the configured path."""
    app.add_api_route(path, receive_webhook, methods=["POST"], tags=["webhook"])


@router.get("/healthz", response_model=HealthResponse, tags=["system"])
async def health_check(service: ServiceDep) -> HealthResponse:
    """Liveness and basic relay state."""
    return HealthResponse(
        ok=True,
        webhook_path=service.settings.webhook_path,
        webhook_port=service.settings.listen_port,
        events=len(service.store),
        gateway_configured=service.gateway.configured,
    )


@router.get("/events", response_model=EventPage, tags=["events"])
async def list_events(
    service: ServiceDep,
    event_status: Annotated[EventStatus | None, Query(alias="status")] = None,
    limit: Annotated[str | None, Query()] = None,
    offset: Annotated[str | None, Query()] = None,
) -> EventPage:
    """List stored events, most recently received first.

    limit and offset are clamped rather than rejected.
    """
    return service.list_events(status=event_status, limit=limit, offset=offset)


@router.get("/events/{event_id}", response_model=WebhookEvent, tags=["events"])
async def get_event(event_id: str, service: ServiceDep) -> WebhookEvent:
    """Fetch one stored event."""
    event = service.get_event(event_id)
    if event is None:
        raise NotFoundError("event", event_id)
    return event


@router.post("/events/{event_id}/replay", response_model=ReplayResult, tags=["events"])
async def replay_event(event_id: str, service: ServiceDep) -> ReplayResult:
    """Return an event to pending and attempt delivery once."""
    return await service.replay_event(event_id)


@router.put("/gateway", response_model=GatewayInfo, tags=["admin"])
async def update_gateway(request: GatewayUpdateRequest, service: ServiceDep) -> GatewayInfo:
    """Change the gateway destination or credential without a restart."""
    return service.set_gateway(url=request.gateway_url, token=request.gateway_auth_token)


@router.get("/status", response_model=RelayStatus, tags=["admin"])
async def get_status(service: ServiceDep) -> RelayStatus:
    """Point-in-time snapshot of the relay."""
    return service.get_status()
