"""Session client capability set and its lifecycle events.

The controller talks to the transport only through :class:`SessionClient`.
Lifecycle notifications are tagged with a :class:`SessionEvent`; handlers are
registered per tag with ``on`` and removed with ``off``.

Event payloads:

- ``CONNECTED``: no arguments
- ``DISCONNECTED``: ``reason`` (str or None)
- ``RECONNECTING`` / ``RECONNECTED``: no arguments
- ``MEDIA_DEVICE_ERROR``: the exception raised by the device layer
- ``CONNECTION_STATE_CHANGED``: the new :class:`ConnectionState`
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Type alias for event handler callbacks
EventHandler = Callable[..., None]


class SessionEvent(Enum):
    """Lifecycle events emitted by a session client."""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"
    RECONNECTED = "reconnected"
    MEDIA_DEVICE_ERROR = "media_device_error"
    CONNECTION_STATE_CHANGED = "connection_state_changed"


class ConnectionState(Enum):
    """Transport connection state as reported by the client."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@runtime_checkable
class SessionClient(Protocol):
    """Capabilities the controller needs from the room transport."""

    @property
    def connection_state(self) -> ConnectionState: ...

    async def connect(self, url: str, token: str, *, auto_subscribe: bool = True) -> None: ...

    async def disconnect(self) -> None: ...

    async def enable_capture(
        self,
        enabled: bool,
        device_id: int | None = None,
        *,
        pre_connect_buffer: bool = False,
    ) -> None: ...

    def on(self, event: SessionEvent, handler: EventHandler) -> None: ...

    def off(self, event: SessionEvent, handler: EventHandler) -> None: ...


class EventEmitter:
    """Per-event handler registry.

    A handler that raises is logged and does not stop delivery to the
    remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[SessionEvent, list[EventHandler]] = {}

    def on(self, event: SessionEvent, handler: EventHandler) -> None:
        """Register ``handler`` for ``event``."""
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: SessionEvent, handler: EventHandler) -> None:
        """Remove ``handler`` for ``event``; unknown handlers are ignored."""
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: SessionEvent) -> int:
        return len(self._handlers.get(event, []))

    def emit(self, event: SessionEvent, *args: Any) -> None:
        """Dispatch an event to all registered handlers."""
        logger.debug("Session event: %s", event.value)
        # Copy so handlers may unregister themselves while being called
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(*args)
            except Exception:
                logger.exception("Error in handler for event '%s'", event.value)
