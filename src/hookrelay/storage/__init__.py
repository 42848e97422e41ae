"""Storage for hookrelay.

The relay keeps every event in memory and mirrors the full set to a JSON
file after each mutation.

Example:
    ```python
    from hookrelay.storage import EventStore

    store = EventStore(".hookrelay-events.json")
    await store.load()
    ```
"""

from .events import EventStore

__all__ = [
    "EventStore",
]
