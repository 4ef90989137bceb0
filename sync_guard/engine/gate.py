"""Single decision point guarding notification dispatch."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .rate_limiter import RateLimiter
from .thresholds import ThresholdEvaluator, ThresholdResult

logger = logging.getLogger(__name__)

REASON_ALLOWED = "allowed"
REASON_THRESHOLDS = "thresholds_not_exceeded"
REASON_RATE_LIMITED = "rate_limit_exceeded"
REASON_SHUTDOWN = "shutdown"


@dataclass(frozen=True)
class GateDecision:
    proceed: bool
    threshold_result: ThresholdResult
    rate_limited: bool
    reason: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "proceed": self.proceed,
            "rate_limited": self.rate_limited,
            "reason": self.reason,
            "thresholds": self.threshold_result.to_payload(),
        }


class NotificationGate:
    """Combine the threshold decision with the global rate limiter."""

    def __init__(
        self,
        evaluator: ThresholdEvaluator,
        limiter: RateLimiter,
        *,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self._evaluator = evaluator
        self._limiter = limiter
        self._stop_event = stop_event or threading.Event()
        # check-then-record on the limiter must not interleave between callers
        self._lock = threading.Lock()

    def should_notify(self, source_id: str, now: float) -> GateDecision:
        thresholds = self._evaluator.evaluate(source_id, now)
        if not thresholds.should_alert:
            logger.debug(
                "Thresholds not exceeded, skipping notification",
                extra={"source": source_id, "thresholds": thresholds.to_payload()},
            )
            return GateDecision(False, thresholds, False, REASON_THRESHOLDS)
        if self._stop_event.is_set():
            logger.info("Shutdown in progress, skipping notification", extra={"source": source_id})
            return GateDecision(False, thresholds, False, REASON_SHUTDOWN)
        with self._lock:
            if not self._limiter.allow(now):
                logger.warning(
                    "Rate limit exceeded, skipping notification",
                    extra={"source": source_id},
                )
                return GateDecision(False, thresholds, True, REASON_RATE_LIMITED)
            self._limiter.record(now)
        return GateDecision(True, thresholds, False, REASON_ALLOWED)
