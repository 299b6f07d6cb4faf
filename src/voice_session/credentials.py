"""Connection-details client.

Fetches a short-lived connection descriptor (server URL, room name,
participant token) from the token-issuing endpoint. One request is issued
per connection attempt; results are never cached.

Request::

    POST <base_url>/api/connection-details
    Content-Type: application/json
    X-Sandbox-Id: <sandbox id>

    {"room_config": {"agents": [{"agent_name": "<agent>"}]}}
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import ClientConfig, SessionConfig
from .errors import CredentialFetchError

logger = logging.getLogger(__name__)


class ConnectionDescriptor(BaseModel):
    """Authorizes exactly one session; do not reuse after it ends."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    server_url: str = Field(alias="serverUrl", min_length=1)
    room_name: str = Field(alias="roomName", min_length=1)
    participant_token: str = Field(alias="participantToken", min_length=1, repr=False)


class CredentialSource:
    """Async client for the connection-details endpoint.

    Usage::

        source = CredentialSource(ClientConfig())
        descriptor = await source.fetch(SessionConfig(sandbox_id="abc"))
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    @property
    def url(self) -> str:
        return self._config.connection_details_url

    async def fetch(self, session: SessionConfig) -> ConnectionDescriptor:
        """Request a fresh connection descriptor for ``session``.

        Raises:
            CredentialFetchError: non-2xx response, transport failure, or a
                body that is not JSON with the required fields.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self._config.request_timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(
                    self.url,
                    headers=self._headers(session),
                    json=self._payload(session),
                )
        except httpx.HTTPError as exc:
            logger.error("Error fetching connection details: %s", exc)
            raise CredentialFetchError(f"Error fetching connection details: {exc}") from exc

        if not resp.is_success:
            logger.error("Connection details API error: %s", resp.text)
            raise CredentialFetchError(
                f"Failed to get connection details: {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            descriptor = ConnectionDescriptor.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            logger.error("Malformed connection details: %s", resp.text)
            raise CredentialFetchError(
                f"Malformed connection details: {exc}",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc

        logger.info(
            "Connection details received (serverUrl=%s, roomName=%s)",
            descriptor.server_url,
            descriptor.room_name,
        )
        return descriptor

    @staticmethod
    def _headers(session: SessionConfig) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Sandbox-Id": session.sandbox_id or "",
        }

    @staticmethod
    def _payload(session: SessionConfig) -> dict[str, Any]:
        if not session.agent_name:
            return {}
        return {"room_config": {"agents": [{"agent_name": session.agent_name}]}}
