"""Shared test fixtures for the voice session tests.

FakeSessionClient stands in for the room transport so the controller can be
exercised without a media server or audio device.
"""

from __future__ import annotations

import asyncio

import pytest

from voice_session.config import ClientConfig, SessionConfig
from voice_session.credentials import ConnectionDescriptor
from voice_session.events import ConnectionState, EventEmitter, SessionEvent


class FakeSessionClient(EventEmitter):
    """Records calls; behaviour is steered through constructor flags.

    ``emit_connected=False`` leaves the client in CONNECTING after
    ``connect`` returns, until :meth:`mark_connected` is called.
    """

    def __init__(
        self,
        *,
        emit_connected: bool = True,
        connect_error: Exception | None = None,
        capture_error: Exception | None = None,
        connect_gate: asyncio.Event | None = None,
        capture_gate: asyncio.Event | None = None,
    ) -> None:
        super().__init__()
        self.state = ConnectionState.DISCONNECTED
        self.emit_connected = emit_connected
        self.connect_error = connect_error
        self.capture_error = capture_error
        self.connect_gate = connect_gate
        self.capture_gate = capture_gate
        self.connect_calls: list[tuple[str, str, bool]] = []
        self.capture_calls: list[tuple[bool, int | None, bool]] = []
        self.capture_times: list[float] = []
        self.disconnect_calls = 0

    @property
    def connection_state(self) -> ConnectionState:
        return self.state

    async def connect(self, url: str, token: str, *, auto_subscribe: bool = True) -> None:
        self.connect_calls.append((url, token, auto_subscribe))
        self.state = ConnectionState.CONNECTING
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.connect_error is not None:
            self.state = ConnectionState.DISCONNECTED
            raise self.connect_error
        if self.emit_connected:
            self.mark_connected()

    def mark_connected(self) -> None:
        self.state = ConnectionState.CONNECTED
        self.emit(SessionEvent.CONNECTED)

    async def disconnect(self) -> None:
        """Like the room SDK: a no-op unless connected or reconnecting."""
        self.disconnect_calls += 1
        if self.state in (ConnectionState.DISCONNECTED, ConnectionState.CONNECTING):
            return
        self.state = ConnectionState.DISCONNECTED
        self.emit(SessionEvent.DISCONNECTED, "client_initiated")

    async def enable_capture(self, enabled, device_id=None, *, pre_connect_buffer=False) -> None:
        self.capture_calls.append((enabled, device_id, pre_connect_buffer))
        self.capture_times.append(asyncio.get_running_loop().time())
        if self.capture_gate is not None:
            await self.capture_gate.wait()
        if self.capture_error is not None:
            raise self.capture_error


class FakeCredentialSource:
    """Returns a canned descriptor, optionally after a gate opens."""

    def __init__(
        self,
        descriptor: ConnectionDescriptor | None = None,
        *,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.descriptor = descriptor or make_descriptor()
        self.error = error
        self.gate = gate
        self.calls: list[SessionConfig] = []

    async def fetch(self, session: SessionConfig) -> ConnectionDescriptor:
        self.calls.append(session)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.descriptor


class RecordingSink:
    """Notification sink that keeps everything it is given."""

    def __init__(self) -> None:
        self.notifications = []

    def notify(self, notification) -> None:
        self.notifications.append(notification)


def make_descriptor(**overrides) -> ConnectionDescriptor:
    data = {
        "serverUrl": "wss://rooms.example.com",
        "roomName": "voice_assistant_room_1234",
        "participantToken": "secret-token",
    }
    data.update(overrides)
    return ConnectionDescriptor.model_validate(data)


@pytest.fixture
def client_config() -> ClientConfig:
    return ClientConfig(
        base_url="https://app.example.com",
        connection_details_endpoint="/api/connection-details",
        request_timeout=5.0,
        connect_timeout=1.0,
        connected_wait_timeout=0.2,
        capture_device_id=None,
        log_level="DEBUG",
    )


@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig(
        sandbox_id="sandbox-42",
        agent_name="voice-helper",
        pre_connect_buffer_enabled=True,
    )


@pytest.fixture
def fake_client() -> FakeSessionClient:
    return FakeSessionClient()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
