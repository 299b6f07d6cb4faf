"""Configuration for the voice session controller.

Loads settings from environment variables or .env file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

import httpx
from dotenv import load_dotenv

load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _env_optional_int(name: str) -> int | None:
    value = os.getenv(name, "").strip()
    return int(value) if value else None


@dataclass(frozen=True)
class SessionConfig:
    """Caller-supplied description of the session to start.

    The controller reads it and never mutates it.
    """

    sandbox_id: str | None = None
    agent_name: str | None = None
    pre_connect_buffer_enabled: bool = False

    @classmethod
    def from_env(cls) -> SessionConfig:
        return cls(
            sandbox_id=os.getenv("SANDBOX_ID") or None,
            agent_name=os.getenv("AGENT_NAME") or None,
            pre_connect_buffer_enabled=_env_flag("PRE_CONNECT_BUFFER_ENABLED"),
        )


@dataclass
class AudioCaptureConfig:
    """Microphone capture parameters (16-bit PCM)."""

    sample_rate: int = 24000
    channels: int = 1
    chunk_size: int = 1200
    pre_connect_buffer_seconds: float = 10.0

    @property
    def pre_connect_buffer_chunks(self) -> int:
        """Maximum number of chunks held while the track is not yet published."""
        return max(1, int(self.pre_connect_buffer_seconds * self.sample_rate / self.chunk_size))


@dataclass
class ClientConfig:
    """Connection-level settings for the controller and its collaborators."""

    # Origin the connection-details endpoint is resolved against
    base_url: str = field(
        default_factory=lambda: os.environ["VOICE_SESSION_BASE_URL"]
    )
    connection_details_endpoint: str = field(
        default_factory=lambda: os.getenv("CONN_DETAILS_ENDPOINT", "/api/connection-details")
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("CONN_DETAILS_TIMEOUT_SECONDS", "10"))
    )
    connect_timeout: float = field(
        default_factory=lambda: float(os.getenv("CONNECT_TIMEOUT_SECONDS", "30"))
    )
    connected_wait_timeout: float = field(
        default_factory=lambda: float(os.getenv("CONNECTED_WAIT_TIMEOUT_SECONDS", "5"))
    )
    capture_device_id: int | None = field(
        default_factory=lambda: _env_optional_int("CAPTURE_DEVICE_INDEX")
    )

    audio: AudioCaptureConfig = field(default_factory=AudioCaptureConfig)

    # Logging
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO")
    )

    @property
    def connection_details_url(self) -> str:
        """Endpoint URL joined onto ``base_url``.

        Relative endpoints resolve against the base origin; absolute ones
        replace it.
        """
        return str(httpx.URL(self.base_url).join(self.connection_details_endpoint))
