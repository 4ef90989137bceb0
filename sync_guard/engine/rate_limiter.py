"""Dual-limit guard shared by every alert dispatch."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, Optional

from sync_guard.config.models import RateLimitConfig

logger = logging.getLogger(__name__)

# History is retained for this many periods; only the trailing one is counted.
_HISTORY_PERIODS = 2


class RateLimiter:
    """Enforce a minimum interval and a maximum count per rolling period.

    ``allow`` only inspects state; callers commit with ``record`` once they
    decide to dispatch.
    """

    def __init__(self, config: RateLimitConfig) -> None:
        self._config = config
        self._last_dispatch: Optional[float] = None
        self._history: Deque[float] = deque()
        self._lock = threading.RLock()

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    @property
    def last_dispatch(self) -> Optional[float]:
        return self._last_dispatch

    def dispatches_in_period(self, now: float) -> int:
        cutoff = now - self._config.period_duration
        with self._lock:
            return sum(1 for stamp in self._history if stamp > cutoff)

    def allow(self, now: float) -> bool:
        with self._lock:
            last = self._last_dispatch
            if last is not None and (now - last) < self._config.min_interval:
                logger.debug(
                    "Rate limit: minimum interval not met",
                    extra={"since_last": now - last, "min_interval": self._config.min_interval},
                )
                return False
            count = self.dispatches_in_period(now)
        if count >= self._config.max_per_period:
            logger.debug(
                "Rate limit: max per period exceeded",
                extra={"count": count, "max_per_period": self._config.max_per_period},
            )
            return False
        return True

    def record(self, now: float) -> None:
        with self._lock:
            self._last_dispatch = now
            self._history.append(now)
            cutoff = now - _HISTORY_PERIODS * self._config.period_duration
            while self._history and self._history[0] <= cutoff:
                self._history.popleft()

    def remaining(self, now: float) -> int:
        return max(0, self._config.max_per_period - self.dispatches_in_period(now))

    def reset(self) -> None:
        with self._lock:
            self._last_dispatch = None
            self._history.clear()
