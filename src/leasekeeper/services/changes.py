"""In-process change notifications for settings and approvals."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)

SETTINGS_TOPIC = "settings"
APPROVALS_TOPIC = "approvals"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    topic: str
    key: str
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[ChangeEvent], None]


class ChangeFeed(Protocol):
    """Publishes changes to interested readers."""

    def publish(self, event: ChangeEvent) -> None:
        ...

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        ...


class CallbackChangeFeed:
    """Synchronous feed delivering events to registered callbacks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[Subscriber]] = {}

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.setdefault(topic, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(topic, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(event.topic, []))
        for callback in callbacks:
            try:
                callback(event)
            except Exception as exc:
                # A broken reader must not fail the write that produced the event.
                logger.error(
                    f"Change subscriber failed: {exc}",
                    exc_info=True,
                    extra={"topic": event.topic, "key": event.key},
                )


__all__ = [
    "APPROVALS_TOPIC",
    "CallbackChangeFeed",
    "ChangeEvent",
    "ChangeFeed",
    "SETTINGS_TOPIC",
]
