"""FastAPI HTTP layer for hookrelay.

Exposes the inbound webhook route and the admin surface over HTTP.

Example:
    ```python
    import uvicorn
    from hookrelay.api import create_app

    app = create_app()
    uvicorn.run(app, host="127.0.0.1", port=3789)
    ```

Or run directly:
    ```bash
    python -m hookrelay.api
    ```
"""

from .app import create_app
from .router import router

__all__ = [
    "create_app",
    "router",
]
