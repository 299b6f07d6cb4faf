"""Voice session controller - credential fetch, room connection, and microphone lifecycle."""

from .config import AudioCaptureConfig, ClientConfig, SessionConfig
from .credentials import ConnectionDescriptor, CredentialSource
from .errors import (
    ConnectError,
    CredentialFetchError,
    DeviceEnableError,
    SessionError,
    StaleCompletionIgnored,
)
from .events import ConnectionState, SessionClient, SessionEvent
from .notifications import LoggingNotificationSink, Notification, NotificationSink
from .room_client import RoomClient
from .session_controller import ControllerState, SessionController

__all__ = [
    "AudioCaptureConfig",
    "ClientConfig",
    "SessionConfig",
    "ConnectionDescriptor",
    "CredentialSource",
    "SessionError",
    "CredentialFetchError",
    "ConnectError",
    "DeviceEnableError",
    "StaleCompletionIgnored",
    "ConnectionState",
    "SessionClient",
    "SessionEvent",
    "Notification",
    "NotificationSink",
    "LoggingNotificationSink",
    "RoomClient",
    "ControllerState",
    "SessionController",
]
