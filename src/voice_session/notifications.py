"""User-facing alert sink consumed by the controller."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    title: str
    description: str


@runtime_checkable
class NotificationSink(Protocol):
    """Surfaces alerts to the user. Fire-and-forget."""

    def notify(self, notification: Notification) -> None: ...


class LoggingNotificationSink:
    """Default sink used when no UI is attached: alerts go to the log."""

    def __init__(self, logger_name: str = "voice_session.alerts") -> None:
        self._logger = logging.getLogger(logger_name)

    def notify(self, notification: Notification) -> None:
        self._logger.warning("%s: %s", notification.title, notification.description)
