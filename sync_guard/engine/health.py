"""Coarse per-source health derived from the rolling success rate."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from sync_guard.config.models import HealthConfig
from sync_guard.models import HealthStatus, SyncOutcome

from .window import SlidingWindow

logger = logging.getLogger(__name__)


@dataclass
class SourceHealth:
    status: HealthStatus
    window: SlidingWindow
    success_rate: float = 0.0
    last_outcome_at: Optional[float] = None
    last_error: Optional[str] = None
    successes: int = 0
    failures: int = 0


class HealthStateTracker:
    """Recompute a source's :class:`HealthStatus` on every recorded outcome."""

    def __init__(self, config: Optional[HealthConfig] = None) -> None:
        self._config = config or HealthConfig()
        self._sources: Dict[str, SourceHealth] = {}
        self._lock = threading.RLock()

    def _classify(self, success_rate: float) -> HealthStatus:
        if success_rate >= self._config.healthy_threshold:
            return HealthStatus.HEALTHY
        if success_rate >= self._config.degraded_threshold:
            return HealthStatus.DEGRADED
        return HealthStatus.UNHEALTHY

    def record_outcome(self, outcome: SyncOutcome) -> Tuple[HealthStatus, HealthStatus]:
        """Record ``outcome`` and return ``(previous, current)`` status."""

        with self._lock:
            entry = self._sources.get(outcome.source_id)
            if entry is None:
                entry = SourceHealth(
                    status=HealthStatus.PENDING,
                    window=SlidingWindow(self._config.window_duration, self._config.window_max_samples),
                )
                self._sources[outcome.source_id] = entry
            previous = entry.status
            entry.window.append(outcome.timestamp, outcome.success)
            entry.success_rate = entry.window.success_rate()
            entry.status = self._classify(entry.success_rate)
            entry.last_outcome_at = outcome.timestamp
            if outcome.success:
                entry.successes += 1
                entry.last_error = None
            else:
                entry.failures += 1
                entry.last_error = outcome.error_message
            current = entry.status
        if previous is not current:
            log = logger.info if current is HealthStatus.HEALTHY else logger.warning
            log(
                "Health status changed for %s: %s -> %s",
                outcome.source_id,
                previous.value,
                current.value,
                extra={"source": outcome.source_id, "success_rate": entry.success_rate},
            )
        return previous, current

    def current_status(self, source_id: str) -> HealthStatus:
        with self._lock:
            entry = self._sources.get(source_id)
            return entry.status if entry is not None else HealthStatus.PENDING

    def overall_status(self) -> HealthStatus:
        with self._lock:
            statuses = [entry.status for entry in self._sources.values()]
        if not statuses:
            return HealthStatus.PENDING
        return max(statuses, key=lambda status: status.rank)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {
                source_id: {
                    "status": entry.status.value,
                    "success_rate": round(entry.success_rate, 4),
                    "successes": entry.successes,
                    "failures": entry.failures,
                    "last_outcome_at": entry.last_outcome_at,
                    "last_error": entry.last_error,
                }
                for source_id, entry in self._sources.items()
            }

    def reset(self, source_id: Optional[str] = None) -> None:
        with self._lock:
            if source_id is None:
                self._sources.clear()
            else:
                self._sources.pop(source_id, None)
