"""Minimal observable value for caller-facing state."""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Observable(Generic[T]):
    """Holds a value and notifies subscribers when it changes.

    Usage::

        flag = Observable(False)
        unsubscribe = flag.subscribe(lambda value: print("active:", value))
        flag.set(True)   # prints "active: True"
        flag.set(True)   # unchanged, no notification
        unsubscribe()
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._subscribers: list[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def __bool__(self) -> bool:
        return bool(self._value)

    def set(self, value: T) -> None:
        if value == self._value:
            return
        self._value = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception:
                logger.exception("Error in observable subscriber")

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe
