"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GatewayUpdateRequest(BaseModel):
    """Request body for changing the gateway at runtime.

    Omitted fields keep their current value; an empty URL disables delivery.
    """

    model_config = ConfigDict(extra="forbid")

    gateway_url: str | None = Field(default=None, description="New gateway endpoint")
    gateway_auth_token: str | None = Field(default=None, description="New bearer token")


class HealthResponse(BaseModel):
    """Response for the health check endpoint."""

    model_config = ConfigDict(extra="forbid")

    ok: bool
    webhook_path: str
    webhook_port: int
    events: int
    gateway_configured: bool
