"""Entry point for running the relay listener as a module.

Usage:
    python -m hookrelay.api
"""

import uvicorn

from hookrelay.config import Settings

from .app import create_app


def main() -> None:
    """Serve the relay on the configured host and port.

    uvicorn exits the process if the listener cannot bind.
    """
    settings = Settings()
    uvicorn.run(
        create_app(settings),
        host=settings.listen_host,
        port=settings.listen_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
