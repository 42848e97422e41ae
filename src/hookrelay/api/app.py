"""FastAPI application for hookrelay."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hookrelay import __version__
from hookrelay.config import Settings
from hookrelay.exceptions import NotFoundError, RelayError, ValidationError
from hookrelay.logging import configure_logging, get_logger
from hookrelay.service import RelayService

from .router import register_webhook_route, router, set_service

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    service: RelayService | None = None,
) -> FastAPI:
    """Create a FastAPI application.

    Args:
        settings: Optional settings. Uses environment if None.
        service: Optional pre-built service (settings are taken from it).

    Returns:
        Configured FastAPI application.

    Example:
        ```bash
        uvicorn --factory hookrelay.api:create_app
        ```
    """
    if service is not None:
        settings = service.settings
    elif settings is None:
        settings = Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Start the relay on startup and stop it on shutdown."""
        configure_logging(level=settings.log_level, format=settings.log_format)
        relay = service or RelayService.create(settings)

        await relay.start()
        set_service(relay)
        logger.info(
            "Listening for webhooks",
            path=settings.webhook_path,
            host=settings.listen_host,
            port=settings.listen_port,
        )

        try:
            yield
        finally:
            await relay.stop()
            set_service(None)

    app = FastAPI(
        title="hookrelay",
        description="Verifies inbound webhooks and relays them to a gateway.",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """Handle validation errors with 400 status."""
        logger.warning(
            "Validation error", field=exc.field, error=exc.message, path=str(request.url)
        )
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(NotFoundError)
    async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        """Handle not found errors with 404 status."""
        logger.info(
            "Resource not found",
            resource_type=exc.resource_type,
            resource_id=exc.resource_id,
            path=str(request.url),
        )
        return JSONResponse(status_code=404, content=exc.to_dict())

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        """Handle all other relay errors with 500 status."""
        logger.error("Relay error", error=exc.message, code=exc.code, path=str(request.url))
        return JSONResponse(status_code=500, content=exc.to_dict())

    register_webhook_route(app, settings.webhook_path)
    app.include_router(router)

    return app
