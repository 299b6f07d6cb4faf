"""Error types raised along the session startup chain."""

from __future__ import annotations


class SessionError(Exception):
    """Base class for failures surfaced by the session controller."""


class CredentialFetchError(SessionError):
    """The connection-details endpoint failed or returned an unusable body.

    ``body`` holds the upstream response text when there was a response;
    transport failures are chained as ``__cause__``.
    """

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ConnectError(SessionError):
    """The transport handshake with the room failed or timed out."""


class DeviceEnableError(SessionError):
    """The capture device could not be opened or published."""


class StaleCompletionIgnored(SessionError):
    """A startup continuation finished after its attempt was abandoned.

    Not reported to the user.
    """
