"""
Change Notifications

Services publish a ChangeEvent after every state change they commit.
Consumers (a UI layer, the assistant context builder) subscribe instead
of reaching into service internals.
"""

from dataclasses import dataclass
from typing import Any, Callable

import structlog


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    topic: str
    payload: Any = None


Listener = Callable[[ChangeEvent], None]


class ChangeNotifier:
    """Synchronous publish/subscribe hub owned by a single service."""

    def __init__(self):
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Returns a callable that removes it again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, topic: str, payload: Any = None) -> None:
        event = ChangeEvent(topic=topic, payload=payload)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # A broken subscriber must not undo a committed change
                logger.error(
                    "change_listener_failed",
                    topic=topic,
                    error=str(e),
                )
