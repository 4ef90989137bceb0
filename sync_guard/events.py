"""Observer interface used to broadcast engine activity to interested parties."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping

logger = logging.getLogger(__name__)

OUTCOME_RECORDED = "outcome_recorded"
HEALTH_CHANGED = "health_changed"
ALERT_SUPPRESSED = "alert_suppressed"
ALERT_DISPATCHED = "alert_dispatched"


@dataclass(frozen=True)
class EngineEvent:
    type: str
    source_id: str | None = None
    data: Mapping[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


Listener = Callable[[EngineEvent], Any]


class EventBus:
    """Fan engine events out to subscribed listeners.

    Listener failures are logged and never reach the publisher.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(listener)

        return _unsubscribe

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def publish(self, event: EngineEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as exc:  # pragma: no cover - listener bugs are logged only
                logger.warning(
                    "Event listener failed for %s: %s", event.type, exc, exc_info=True
                )

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


__all__ = [
    "ALERT_DISPATCHED",
    "ALERT_SUPPRESSED",
    "EngineEvent",
    "EventBus",
    "HEALTH_CHANGED",
    "Listener",
    "OUTCOME_RECORDED",
]
