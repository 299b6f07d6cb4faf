"""Session controller for real-time voice agent connections.

Owns the sequence of steps that takes a session from idle to streaming
microphone audio to a remote agent room, and back.

Architecture:
    start() → CredentialSource (fetch) → SessionClient.connect → wait for "connected" → SessionClient.enable_capture → ACTIVE

Disconnects and device/transport errors flow back into the controller, which
updates ``is_active`` and forwards a summarized alert to the notification sink.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from .config import ClientConfig, SessionConfig
from .credentials import CredentialSource
from .errors import ConnectError, DeviceEnableError, SessionError, StaleCompletionIgnored
from .events import ConnectionState, SessionClient, SessionEvent
from .notifications import LoggingNotificationSink, Notification, NotificationSink
from .observable import Observable
from .room_client import RoomClient

logger = logging.getLogger(__name__)

CONNECT_ERROR_TITLE = "There was an error connecting to the agent"
MEDIA_DEVICE_ERROR_TITLE = "Encountered an error with your media devices"
TIMEOUT_GUIDANCE = (
    "Connection timeout. Please check your LiveKit server configuration "
    "and environment variables."
)


class ControllerState(Enum):
    """Lifecycle states of the session controller."""
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"


class CancellationContext:
    """Marks a startup chain (or the whole controller) as abandoned.

    Cancelling a parent cancels every child. Once cancelled, a context stays
    cancelled. Continuations call :meth:`check` before mutating state.
    """

    def __init__(self, parent: CancellationContext | None = None, name: str = "") -> None:
        self._parent = parent
        self._cancelled = False
        self.name = name

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._parent is not None and self._parent.cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def child(self, name: str = "") -> CancellationContext:
        return CancellationContext(self, name)

    def check(self) -> None:
        """Raise :class:`StaleCompletionIgnored` if this context was cancelled."""
        if self.cancelled:
            raise StaleCompletionIgnored(f"startup attempt {self.name or '?'} abandoned")


def describe_error(error: BaseException) -> str:
    """Render ``error`` as ``"<Type>: <message>"`` for display.

    Timeout-flavored messages are replaced with configuration guidance.
    """
    message = str(error) or "Unknown error"
    if "timeout" in message or "signal" in message:
        message = TIMEOUT_GUIDANCE
    return f"{type(error).__name__}: {message}"


class SessionController:
    """Drives one agent session at a time for a single room client.

    Manages the full lifecycle:
    1. Fetch a fresh connection descriptor
    2. Connect the room client
    3. Wait (bounded) for the client to report it is connected
    4. Enable the microphone
    5. Track disconnects and device errors until disposed

    Usage::

        controller = SessionController(SessionConfig(sandbox_id="abc"), ClientConfig())
        controller.is_active.subscribe(render_button)

        controller.start()   # returns immediately; is_active is now True
        ...
        controller.stop()
        await controller.aclose()
    """

    def __init__(
        self,
        session: SessionConfig,
        config: ClientConfig,
        *,
        client: SessionClient | None = None,
        credentials: CredentialSource | None = None,
        notifier: NotificationSink | None = None,
    ) -> None:
        self._session = session
        self._config = config
        self._client = client or RoomClient(config)
        self._credentials = credentials or CredentialSource(config)
        self._notifier = notifier or LoggingNotificationSink()

        self._state = ControllerState.IDLE
        self.is_active: Observable[bool] = Observable(False)

        self._lifetime = CancellationContext(name="controller")
        self._attempt: CancellationContext | None = None
        self._attempt_count = 0
        self._tasks: set[asyncio.Task] = set()
        self._disposed = False

        self._subscriptions = [
            (SessionEvent.DISCONNECTED, self._on_disconnected),
            (SessionEvent.MEDIA_DEVICE_ERROR, self._on_media_device_error),
            (SessionEvent.CONNECTION_STATE_CHANGED, self._on_connection_state_changed),
        ]
        for event, handler in self._subscriptions:
            self._client.on(event, handler)

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def client(self) -> SessionClient:
        return self._client

    @property
    def disposed(self) -> bool:
        return self._disposed

    # -- Caller surface ----------------------------------------------------

    def start(self) -> None:
        """Begin a session. Returns immediately; failures go to the notifier.

        Must be called from a running event loop. A no-op while a session is
        starting or active.
        """
        if self._disposed:
            logger.warning("start() called on a disposed session controller")
            return
        if self._state in (ControllerState.STARTING, ControllerState.ACTIVE):
            logger.debug("start() ignored in state %s", self._state.value)
            return

        self._abandon_attempt()
        self._attempt_count += 1
        attempt = self._lifetime.child(name=str(self._attempt_count))
        self._attempt = attempt
        self._set_state(ControllerState.STARTING)

        task = asyncio.get_running_loop().create_task(self._run_startup(attempt))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def stop(self) -> None:
        """End the session from the caller's point of view.

        Leaves the transport connected; disposal disconnects it.
        """
        if self._state is ControllerState.IDLE:
            return
        self._set_state(ControllerState.STOPPING)
        self._abandon_attempt()
        self._set_state(ControllerState.IDLE)

    async def aclose(self) -> None:
        """Dispose the controller: ignore in-flight results and disconnect."""
        if self._disposed:
            return
        self._disposed = True
        self._lifetime.cancel()
        for event, handler in self._subscriptions:
            self._client.off(event, handler)
        self._set_state(ControllerState.IDLE)
        logger.info("Disposing session controller; disconnecting client")
        await self._client.disconnect()

    async def drain(self) -> None:
        """Wait for in-flight startup chains to settle."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def __aenter__(self) -> SessionController:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    # -- Startup chain -----------------------------------------------------

    async def _run_startup(self, attempt: CancellationContext) -> None:
        try:
            await self._startup(attempt)
        except StaleCompletionIgnored as exc:
            logger.debug("Ignoring stale completion: %s", exc)
            # A connect that was in flight at disposal may have landed since
            if self._lifetime.cancelled:
                await self._force_disconnect()
        except Exception as exc:
            await self._fail_startup(attempt, exc)

    async def _startup(self, attempt: CancellationContext) -> None:
        logger.info("Starting session (attempt=%s)", attempt.name)

        if self._client.connection_state is ConnectionState.DISCONNECTED:
            descriptor = await self._credentials.fetch(self._session)
            attempt.check()

            logger.info("Connecting to room: %s", descriptor.room_name)
            try:
                await self._client.connect(
                    descriptor.server_url,
                    descriptor.participant_token,
                    auto_subscribe=True,
                )
            except SessionError:
                raise
            except Exception as exc:
                raise ConnectError(str(exc) or type(exc).__name__) from exc
            attempt.check()
        else:
            logger.info(
                "Client already %s; reusing the existing connection",
                self._client.connection_state.value,
            )

        logger.info("Room connected, enabling microphone...")
        await self._wait_until_connected()
        attempt.check()
        self._check_still_starting(attempt)

        try:
            await self._client.enable_capture(
                True,
                self._config.capture_device_id,
                pre_connect_buffer=self._session.pre_connect_buffer_enabled,
            )
        except SessionError:
            raise
        except Exception as exc:
            raise DeviceEnableError(str(exc) or type(exc).__name__) from exc
        attempt.check()
        self._check_still_starting(attempt)

        self._set_state(ControllerState.ACTIVE)
        logger.info("Microphone enabled; session active (attempt=%s)", attempt.name)

    async def _wait_until_connected(self) -> None:
        """Release once the client reports connected, or after the fallback delay.

        The one-shot listener is always removed before returning.
        """
        if self._client.connection_state is ConnectionState.CONNECTED:
            return

        released: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def on_connected(*_) -> None:
            if not released.done():
                released.set_result(None)

        self._client.on(SessionEvent.CONNECTED, on_connected)
        try:
            done, _ = await asyncio.wait({released}, timeout=self._config.connected_wait_timeout)
            if not done:
                logger.warning(
                    "No connected event after %.1fs; enabling microphone anyway",
                    self._config.connected_wait_timeout,
                )
        finally:
            self._client.off(SessionEvent.CONNECTED, on_connected)
            released.cancel()

    def _check_still_starting(self, attempt: CancellationContext) -> None:
        """Raise :class:`StaleCompletionIgnored` if the session already ended."""
        if self._state is not ControllerState.STARTING:
            raise StaleCompletionIgnored(
                f"session left {self._state.value} before attempt {attempt.name} finished"
            )

    async def _fail_startup(self, attempt: CancellationContext, error: Exception) -> None:
        if attempt.cancelled:
            logger.debug("Error from abandoned attempt %s: %r", attempt.name, error)
        else:
            logger.error("Session start error: %s", error, exc_info=error)

        # Never leave a half-open session behind, even for an abandoned attempt
        await self._force_disconnect()

        if attempt.cancelled:
            return
        self._set_state(ControllerState.IDLE)
        self._notifier.notify(Notification(
            title=CONNECT_ERROR_TITLE,
            description=describe_error(error),
        ))

    async def _force_disconnect(self) -> None:
        if self._client.connection_state is ConnectionState.DISCONNECTED:
            return
        try:
            await self._client.disconnect()
        except Exception:
            logger.exception("Error disconnecting after abandoned or failed start")

    # -- Client event handlers ---------------------------------------------

    def _on_disconnected(self, reason=None) -> None:
        logger.info("Session disconnected (reason=%s)", reason)
        self._set_state(ControllerState.IDLE)

    def _on_media_device_error(self, error: BaseException) -> None:
        logger.error("Media device error: %s", error)
        self._notifier.notify(Notification(
            title=MEDIA_DEVICE_ERROR_TITLE,
            description=f"{type(error).__name__}: {error}",
        ))

    def _on_connection_state_changed(self, state: ConnectionState) -> None:
        logger.info("Room connection state changed: %s", state.value)
        # Reconnecting is transient; only a full disconnect ends the session
        if state is ConnectionState.DISCONNECTED:
            self._set_state(ControllerState.IDLE)

    # -- Helpers -----------------------------------------------------------

    def _abandon_attempt(self) -> None:
        if self._attempt is not None:
            self._attempt.cancel()
            self._attempt = None

    def _set_state(self, state: ControllerState) -> None:
        if state is self._state:
            return
        logger.debug("Controller state %s -> %s", self._state.value, state.value)
        self._state = state
        self.is_active.set(state in (ControllerState.STARTING, ControllerState.ACTIVE))
