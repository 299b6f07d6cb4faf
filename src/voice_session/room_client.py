"""LiveKit room client for real-time agent sessions.

Implements the :class:`~voice_session.events.SessionClient` capabilities on
top of the LiveKit real-time SDK:

- Room connection with a participant token
- Lifecycle event bridging (connected, disconnected, reconnecting, state changes)
- Microphone capture via PyAudio, published as the participant's microphone track
- Optional pre-connect buffering of captured audio

Docs:
- Python SDK: https://docs.livekit.io/reference/python/livekit/rtc/
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque

from livekit import rtc

from .config import ClientConfig
from .errors import ConnectError, DeviceEnableError
from .events import ConnectionState, EventEmitter, SessionEvent

logger = logging.getLogger(__name__)

_STATE_MAP = {
    rtc.ConnectionState.CONN_DISCONNECTED: ConnectionState.DISCONNECTED,
    rtc.ConnectionState.CONN_CONNECTED: ConnectionState.CONNECTED,
    rtc.ConnectionState.CONN_RECONNECTING: ConnectionState.RECONNECTING,
}


def _map_state(state) -> ConnectionState:
    return _STATE_MAP.get(state, ConnectionState.DISCONNECTED)


class RoomClient(EventEmitter):
    """Async client owning a single LiveKit room connection.

    Usage::

        client = RoomClient(ClientConfig())
        client.on(SessionEvent.DISCONNECTED, handle_disconnect)

        await client.connect(descriptor.server_url, descriptor.participant_token)
        await client.enable_capture(True, pre_connect_buffer=True)
        ...
        await client.disconnect()
    """

    def __init__(self, config: ClientConfig, room: rtc.Room | None = None) -> None:
        super().__init__()
        self._config = config
        self._room = room
        self._bridged = False
        self._connecting = False

        # Capture state
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pyaudio = None
        self._stream = None
        self._source: rtc.AudioSource | None = None
        self._track: rtc.LocalAudioTrack | None = None
        self._buffering = False
        self._pending: deque[tuple[bytes, int]] = deque(
            maxlen=config.audio.pre_connect_buffer_chunks
        )

    @property
    def connection_state(self) -> ConnectionState:
        if self._connecting:
            return ConnectionState.CONNECTING
        if self._room is None:
            return ConnectionState.DISCONNECTED
        return _map_state(self._room.connection_state)

    @property
    def capture_enabled(self) -> bool:
        return self._track is not None

    # -- Lifecycle ---------------------------------------------------------

    async def connect(self, url: str, token: str, *, auto_subscribe: bool = True) -> None:
        """Join the room at ``url``, bounded by ``connect_timeout``."""
        room = self._ensure_room()
        timeout = self._config.connect_timeout
        logger.info("Connecting to room server: %s", url)

        self._connecting = True
        try:
            await asyncio.wait_for(
                room.connect(url, token, options=rtc.RoomOptions(auto_subscribe=auto_subscribe)),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ConnectError(f"Room connect timeout after {timeout:g}s") from exc
        except Exception as exc:
            raise ConnectError(str(exc) or type(exc).__name__) from exc
        finally:
            self._connecting = False

        logger.info("Connected to room: %s", room.name)

    async def disconnect(self) -> None:
        """Stop capture and leave the room. Safe to call when not connected."""
        await self._close_capture()
        if self._room is None:
            return
        await self._room.disconnect()
        logger.info("Disconnected from room")

    # -- Capture -----------------------------------------------------------

    async def enable_capture(
        self,
        enabled: bool,
        device_id: int | None = None,
        *,
        pre_connect_buffer: bool = False,
    ) -> None:
        """Start or stop publishing the local microphone.

        With ``pre_connect_buffer`` the device starts capturing before the
        track is published; frames captured in the meantime are held (bounded)
        and sent once publishing completes.

        Raises:
            DeviceEnableError: the device could not be opened or the track
                could not be published. Device open failures are also emitted
                as ``MEDIA_DEVICE_ERROR``.
        """
        if not enabled:
            await self._close_capture()
            return
        if self._track is not None:
            logger.debug("Capture already enabled")
            return

        room = self._ensure_room()
        self._loop = asyncio.get_running_loop()
        self._buffering = pre_connect_buffer
        try:
            if pre_connect_buffer:
                self._open_stream(device_id)
            self._source = rtc.AudioSource(self._config.audio.sample_rate, self._config.audio.channels)
            track = rtc.LocalAudioTrack.create_audio_track("microphone", self._source)
            options = rtc.TrackPublishOptions(source=rtc.TrackSource.SOURCE_MICROPHONE)
            await room.local_participant.publish_track(track, options)
            self._track = track
            if pre_connect_buffer:
                await self._flush_pending()
            else:
                self._open_stream(device_id)
        except OSError as exc:
            await self._close_capture()
            self.emit(SessionEvent.MEDIA_DEVICE_ERROR, exc)
            raise DeviceEnableError(f"Could not open capture device: {exc}") from exc
        except DeviceEnableError:
            await self._close_capture()
            raise
        except Exception as exc:
            await self._close_capture()
            raise DeviceEnableError(f"Could not publish microphone track: {exc}") from exc

        logger.info("Microphone enabled (pre_connect_buffer=%s)", pre_connect_buffer)

    def _open_stream(self, device_id: int | None) -> None:
        """Open the PyAudio input stream; frames are handed to the event loop."""
        try:
            import pyaudio
        except ImportError as exc:
            raise DeviceEnableError(
                "PyAudio is required for microphone capture; install the 'audio' extra"
            ) from exc

        audio = self._config.audio
        loop = self._loop

        def _capture_callback(in_data, frame_count, _time_info, status_flags):
            if status_flags:
                logger.debug("Capture status flags: %s", status_flags)
            asyncio.run_coroutine_threadsafe(self._push_audio(in_data, frame_count), loop)
            return (None, pyaudio.paContinue)

        self._pyaudio = pyaudio.PyAudio()
        self._stream = self._pyaudio.open(
            format=pyaudio.paInt16,
            channels=audio.channels,
            rate=audio.sample_rate,
            input=True,
            input_device_index=device_id,
            frames_per_buffer=audio.chunk_size,
            stream_callback=_capture_callback,
        )

    async def _push_audio(self, data: bytes, frame_count: int) -> None:
        if self._buffering:
            self._pending.append((data, frame_count))
            return
        if self._source is None:
            return
        await self._source.capture_frame(self._frame(data, frame_count))

    async def _flush_pending(self) -> None:
        flushed = 0
        while self._pending and self._source is not None:
            data, frame_count = self._pending.popleft()
            await self._source.capture_frame(self._frame(data, frame_count))
            flushed += 1
        self._buffering = False
        logger.debug("Flushed %d pre-connect audio chunks", flushed)

    def _frame(self, data: bytes, frame_count: int) -> rtc.AudioFrame:
        return rtc.AudioFrame(
            data=data,
            sample_rate=self._config.audio.sample_rate,
            num_channels=self._config.audio.channels,
            samples_per_channel=frame_count,
        )

    async def _close_capture(self) -> None:
        if self._stream is not None:
            self._stream.stop_stream()
            self._stream.close()
            self._stream = None
        if self._pyaudio is not None:
            self._pyaudio.terminate()
            self._pyaudio = None
        self._buffering = False
        self._pending.clear()

        track, self._track = self._track, None
        self._source = None
        if track is not None and self._room is not None:
            try:
                await self._room.local_participant.unpublish_track(track.sid)
            except Exception:
                logger.warning("Failed to unpublish microphone track", exc_info=True)
            logger.info("Microphone disabled")

    # -- Room events (internal) --------------------------------------------

    def _ensure_room(self) -> rtc.Room:
        if self._room is None:
            self._room = rtc.Room()
        if not self._bridged:
            self._bridge_room_events(self._room)
            self._bridged = True
        return self._room

    def _bridge_room_events(self, room: rtc.Room) -> None:
        room.on("connected", lambda *_: self.emit(SessionEvent.CONNECTED))
        room.on("disconnected", self._on_room_disconnected)
        room.on("reconnecting", lambda *_: self.emit(SessionEvent.RECONNECTING))
        room.on("reconnected", lambda *_: self.emit(SessionEvent.RECONNECTED))
        room.on("connection_state_changed", self._on_room_state_changed)

    def _on_room_disconnected(self, reason=None) -> None:
        logger.info("Room disconnected (reason=%s)", reason)
        self.emit(SessionEvent.DISCONNECTED, reason)

    def _on_room_state_changed(self, state) -> None:
        self.emit(SessionEvent.CONNECTION_STATE_CHANGED, _map_state(state))
