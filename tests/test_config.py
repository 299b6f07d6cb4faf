"""Tests for voice session configuration."""

import os
from unittest import mock

import pytest

from voice_session.config import AudioCaptureConfig, ClientConfig, SessionConfig


class TestSessionConfig:
    """Tests for the caller-supplied session description."""

    def test_default_values(self):
        config = SessionConfig()
        assert config.sandbox_id is None
        assert config.agent_name is None
        assert config.pre_connect_buffer_enabled is False

    def test_is_immutable(self):
        config = SessionConfig(sandbox_id="abc")
        with pytest.raises(AttributeError):
            config.sandbox_id = "other"

    @mock.patch.dict(os.environ, {
        "SANDBOX_ID": "sandbox-1",
        "AGENT_NAME": "helper",
        "PRE_CONNECT_BUFFER_ENABLED": "true",
    })
    def test_from_env(self):
        config = SessionConfig.from_env()
        assert config.sandbox_id == "sandbox-1"
        assert config.agent_name == "helper"
        assert config.pre_connect_buffer_enabled is True

    def test_from_env_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            config = SessionConfig.from_env()
        assert config == SessionConfig()

    @mock.patch.dict(os.environ, {"PRE_CONNECT_BUFFER_ENABLED": "no"})
    def test_false_flag(self):
        assert SessionConfig.from_env().pre_connect_buffer_enabled is False


class TestAudioCaptureConfig:
    def test_default_values(self):
        config = AudioCaptureConfig()
        assert config.sample_rate == 24000
        assert config.channels == 1
        assert config.chunk_size == 1200
        # 10 s of audio at 50 ms per chunk
        assert config.pre_connect_buffer_chunks == 200


class TestClientConfig:
    """Tests for the connection-level configuration."""

    @mock.patch.dict(os.environ, {
        "VOICE_SESSION_BASE_URL": "https://app.example.com",
        "CONNECT_TIMEOUT_SECONDS": "12",
        "CONNECTED_WAIT_TIMEOUT_SECONDS": "2.5",
        "CAPTURE_DEVICE_INDEX": "4",
    })
    def test_from_env(self):
        config = ClientConfig()
        assert config.base_url == "https://app.example.com"
        assert config.connect_timeout == 12.0
        assert config.connected_wait_timeout == 2.5
        assert config.capture_device_id == 4

    @mock.patch.dict(os.environ, {"VOICE_SESSION_BASE_URL": "https://app.example.com"})
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=False):
            for key in (
                "CONN_DETAILS_ENDPOINT",
                "CONNECT_TIMEOUT_SECONDS",
                "CONNECTED_WAIT_TIMEOUT_SECONDS",
                "CAPTURE_DEVICE_INDEX",
            ):
                os.environ.pop(key, None)
            config = ClientConfig()
        assert config.connection_details_endpoint == "/api/connection-details"
        assert config.connect_timeout == 30.0
        assert config.connected_wait_timeout == 5.0
        assert config.capture_device_id is None

    def test_connection_details_url_is_relative_to_base(self):
        config = ClientConfig(base_url="https://app.example.com/")
        assert config.connection_details_url == "https://app.example.com/api/connection-details"

    def test_absolute_endpoint_overrides_base(self):
        config = ClientConfig(
            base_url="https://app.example.com",
            connection_details_endpoint="https://tokens.example.org/v1/details",
        )
        assert config.connection_details_url == "https://tokens.example.org/v1/details"

    def test_missing_base_url_raises(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            with pytest.raises(KeyError):
                ClientConfig()
