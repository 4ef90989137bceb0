"""Consecutive-failure and windowed failure-rate alert conditions per source."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from sync_guard.config.models import ThresholdConfig

from .window import SlidingWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdResult:
    consecutive_exceeded: bool
    consecutive_count: int
    rate_exceeded: bool
    failure_rate: float
    should_alert: bool

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ThresholdState:
    consecutive_failures: int
    window: SlidingWindow


class ThresholdEvaluator:
    """Track per-source failure streaks and failure rates.

    The alert condition is the logical OR of the streak limit and the rate
    limit. Windows are pruned lazily whenever a source is recorded or
    evaluated, so results always reflect ``now``.
    """

    def __init__(self, config: ThresholdConfig, *, clock: Callable[[], float] = time.time) -> None:
        self._config = config
        self._clock = clock
        self._states: Dict[str, ThresholdState] = {}
        self._lock = threading.RLock()

    @property
    def config(self) -> ThresholdConfig:
        return self._config

    def _state_for(self, source_id: str) -> ThresholdState:
        state = self._states.get(source_id)
        if state is None:
            state = ThresholdState(
                consecutive_failures=0,
                window=SlidingWindow(self._config.window_duration, self._config.window_max_samples),
            )
            self._states[source_id] = state
        return state

    def record_outcome(self, source_id: str, success: bool, timestamp: Optional[float] = None) -> None:
        if not source_id:
            raise ValueError("source_id is required")
        when = self._clock() if timestamp is None else float(timestamp)
        if when < 0:
            raise ValueError(f"timestamp must be non-negative, got {when}")
        with self._lock:
            state = self._state_for(source_id)
            if success:
                state.consecutive_failures = 0
            else:
                state.consecutive_failures += 1
            state.window.append(when, success)
            logger.debug(
                "Recorded sync result",
                extra={
                    "source": source_id,
                    "success": success,
                    "consecutive_failures": state.consecutive_failures,
                    "window_size": len(state.window),
                },
            )

    def evaluate(self, source_id: str, now: Optional[float] = None) -> ThresholdResult:
        current = self._clock() if now is None else float(now)
        with self._lock:
            state = self._states.get(source_id)
            if state is None:
                return ThresholdResult(False, 0, False, 0.0, False)
            state.window.prune(current)
            count = state.consecutive_failures
            failures, total = state.window.counts()
        failure_rate = failures / total if total else 0.0
        consecutive_exceeded = count >= self._config.consecutive_failure_limit
        # An empty window never trips the rate condition, even with a zero limit.
        rate_exceeded = total > 0 and failure_rate >= self._config.failure_rate_limit
        return ThresholdResult(
            consecutive_exceeded=consecutive_exceeded,
            consecutive_count=count,
            rate_exceeded=rate_exceeded,
            failure_rate=failure_rate,
            should_alert=consecutive_exceeded or rate_exceeded,
        )

    def counters(self, now: Optional[float] = None) -> Dict[str, Dict[str, Any]]:
        current = self._clock() if now is None else float(now)
        snapshot: Dict[str, Dict[str, Any]] = {}
        with self._lock:
            for source_id, state in self._states.items():
                state.window.prune(current)
                failures, total = state.window.counts()
                snapshot[source_id] = {
                    "consecutive_failures": state.consecutive_failures,
                    "window_total": total,
                    "window_failures": failures,
                    "window_successes": total - failures,
                    "failure_rate": failures / total if total else 0.0,
                }
        return snapshot

    def reset(self, source_id: Optional[str] = None) -> None:
        with self._lock:
            if source_id is None:
                self._states.clear()
            else:
                self._states.pop(source_id, None)
