"""Facade wiring retry, thresholds, health, rate limiting and dispatch together."""

from __future__ import annotations

import asyncio
import logging
import random
import threading
import time
from collections import Counter
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Tuple

from services.notifications import DeliveryResult
from sync_guard.config.models import AlertingConfig
from sync_guard.errors import ErrorKind, PayloadError
from sync_guard.events import (
    ALERT_DISPATCHED,
    ALERT_SUPPRESSED,
    HEALTH_CHANGED,
    OUTCOME_RECORDED,
    EngineEvent,
    EventBus,
    Listener,
)
from sync_guard.models import HealthStatus, SyncOutcome
from sync_guard.notifications.adapters import build_adapters
from sync_guard.notifications.dispatcher import NotificationDispatcher
from sync_guard.notifications.formatting import MessageFormatter
from sync_guard.notifications.payload import NotificationPayload, build_failure_payload
from sync_guard.sinks import JsonlOutcomeSink, OutcomeSink, write_safely

from .gate import REASON_SHUTDOWN, GateDecision, NotificationGate
from .health import HealthStateTracker
from .metrics import MetricRegistry, Timer
from .rate_limiter import RateLimiter
from .retry import RetryExecutor
from .thresholds import ThresholdEvaluator, ThresholdResult

logger = logging.getLogger(__name__)

_META_KEYS = ("error_kind", "error_message", "error", "correlation_id", "duration")


class AlertingEngine:
    """Record sync outcomes and turn sustained failures into rate-limited alerts.

    The engine owns every piece of mutable state: per-source threshold and
    health registries, the global rate limiter and the suppression counters.
    State lives until :meth:`reset` is called.
    """

    def __init__(
        self,
        config: Optional[AlertingConfig] = None,
        *,
        adapters: Optional[Sequence[Any]] = None,
        sink: Optional[OutcomeSink] = None,
        metrics: Optional[MetricRegistry] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or AlertingConfig()
        self._clock = clock
        self._stop_event = threading.Event()
        self.retry_executor = RetryExecutor(
            self.config.retry, sleep=sleep, rng=rng, stop_event=self._stop_event
        )
        self.thresholds = ThresholdEvaluator(self.config.thresholds, clock=clock)
        self.health = HealthStateTracker(self.config.health)
        self.rate_limiter = RateLimiter(self.config.rate_limit)
        self.gate = NotificationGate(self.thresholds, self.rate_limiter, stop_event=self._stop_event)
        self.formatter = MessageFormatter()
        self.dispatcher = NotificationDispatcher(
            timeout=self.config.dispatch_timeout, formatter=self.formatter
        )
        if adapters is None:
            adapters = build_adapters(self.config.channels, timeout=self.config.dispatch_timeout)
        self.adapters = list(adapters)
        if sink is None and self.config.outcome_log_path is not None:
            sink = JsonlOutcomeSink(self.config.outcome_log_path)
        self.sink = sink
        self.metrics = metrics or MetricRegistry()
        self.events = EventBus()
        self._suppressed: Counter[str] = Counter()
        self._suppressed_lock = threading.Lock()

    @classmethod
    def from_config_file(cls, path: Path | str, **kwargs: Any) -> "AlertingEngine":
        from sync_guard.configuration import load_alerting_config

        return cls(load_alerting_config(path), **kwargs)

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    @property
    def is_shutdown(self) -> bool:
        return self._stop_event.is_set()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------
    def record_outcome(
        self,
        source_id: str,
        success: bool,
        timestamp: Optional[float] = None,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> SyncOutcome:
        """Build a :class:`SyncOutcome` from loose arguments and record it.

        ``meta`` may carry ``error_kind``, ``error_message`` (or ``error``),
        ``correlation_id`` and ``duration``; any other keys become details.
        """

        meta = dict(meta or {})
        error_kind = meta.get("error_kind")
        outcome = SyncOutcome(
            source_id=source_id,
            success=bool(success),
            timestamp=self._clock() if timestamp is None else float(timestamp),
            error_kind=ErrorKind.parse(error_kind) if error_kind is not None else None,
            error_message=meta.get("error_message") or meta.get("error"),
            correlation_id=meta.get("correlation_id"),
            duration=meta.get("duration"),
            details={key: value for key, value in meta.items() if key not in _META_KEYS},
        )
        return self.record(outcome)

    def record(self, outcome: SyncOutcome) -> SyncOutcome:
        self.thresholds.record_outcome(outcome.source_id, outcome.success, outcome.timestamp)
        previous, current = self.health.record_outcome(outcome)

        status = "success" if outcome.success else "failure"
        self.metrics.inc("sync_outcomes_total", labels={"source": outcome.source_id, "status": status})
        if not outcome.success:
            kind = outcome.error_kind.value if outcome.error_kind else ErrorKind.UNKNOWN.value
            self.metrics.inc(
                "sync_errors_total", labels={"source": outcome.source_id, "error_kind": kind}
            )
        if outcome.duration is not None:
            self.metrics.observe(
                "sync_duration_seconds", outcome.duration, labels={"source": outcome.source_id}
            )
        if self.sink is not None:
            write_safely(self.sink, outcome)

        self.events.publish(
            EngineEvent(OUTCOME_RECORDED, outcome.source_id, {"outcome": outcome})
        )
        if previous is not current:
            self.events.publish(
                EngineEvent(
                    HEALTH_CHANGED,
                    outcome.source_id,
                    {"previous": previous, "current": current},
                )
            )
        return outcome

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def evaluate(self, source_id: str, now: Optional[float] = None) -> ThresholdResult:
        return self.thresholds.evaluate(source_id, now)

    def current_status(self, source_id: str) -> HealthStatus:
        return self.health.current_status(source_id)

    def get_stats(self, now: Optional[float] = None) -> Dict[str, Any]:
        current = self._clock() if now is None else float(now)
        with self._suppressed_lock:
            suppressed_by_reason = dict(self._suppressed)
        return {
            "last_dispatch": self.rate_limiter.last_dispatch,
            "dispatches_in_period": self.rate_limiter.dispatches_in_period(current),
            "rate_limit_remaining": self.rate_limiter.remaining(current),
            "suppressed": sum(suppressed_by_reason.values()),
            "suppressed_by_reason": suppressed_by_reason,
            "per_source_counters": self.thresholds.counters(current),
            "health": {
                "overall": self.health.overall_status().value,
                "sources": self.health.snapshot(),
            },
            "channels": [getattr(adapter, "name", type(adapter).__name__) for adapter in self.adapters],
            "metrics": self.metrics.snapshot(),
            "shutdown": self.is_shutdown,
        }

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    async def notify(
        self, payload: NotificationPayload, *, now: Optional[float] = None
    ) -> Dict[str, DeliveryResult]:
        """Gate, format and dispatch ``payload``.

        Returns an empty mapping when the alert is suppressed.
        """

        _, results = await self._gated_dispatch(payload, now)
        return results

    async def notify_outcome(
        self, outcome: SyncOutcome, *, now: Optional[float] = None
    ) -> Dict[str, DeliveryResult]:
        _, results = await self.dispatch_outcome(outcome, now=now)
        return results

    async def dispatch_outcome(
        self, outcome: SyncOutcome, *, now: Optional[float] = None
    ) -> Tuple[Optional[GateDecision], Dict[str, DeliveryResult]]:
        """Alert on a failed ``outcome`` and report the gate decision alongside."""

        if outcome.success:
            return None, {}
        current = self._clock() if now is None else float(now)
        thresholds = self.thresholds.evaluate(outcome.source_id, current)
        payload = build_failure_payload(outcome, thresholds)
        return await self._gated_dispatch(payload, current)

    async def send_direct(self, payload: NotificationPayload) -> Dict[str, DeliveryResult]:
        """Dispatch without consulting thresholds or the rate limiter."""

        self._validate(payload)
        if self.is_shutdown:
            logger.info("Shutdown in progress, skipping direct notification")
            return {}
        return await self._deliver(payload)

    async def _gated_dispatch(
        self, payload: NotificationPayload, now: Optional[float]
    ) -> Tuple[Optional[GateDecision], Dict[str, DeliveryResult]]:
        self._validate(payload)
        if not self.adapters:
            logger.debug("No notification channels configured", extra={"source": payload.source_id})
            return None, {}
        current = self._clock() if now is None else float(now)
        decision = self.gate.should_notify(payload.source_id, current)
        if not decision.proceed:
            self._record_suppression(payload, decision)
            return decision, {}
        results = await self._deliver(payload)
        self.metrics.inc("alerts_total", labels={"source": payload.source_id, "result": "dispatched"})
        self.events.publish(
            EngineEvent(
                ALERT_DISPATCHED,
                payload.source_id,
                {"payload": payload, "results": results, "decision": decision},
            )
        )
        return decision, results

    async def _deliver(self, payload: NotificationPayload) -> Dict[str, DeliveryResult]:
        with Timer(self.metrics, "notification_dispatch_seconds", labels={"source": payload.source_id}):
            results = await self.dispatcher.dispatch(payload, self.adapters)
        for name, result in results.items():
            self.metrics.inc(
                "notification_deliveries_total",
                labels={"channel": name, "status": "success" if result.success else "failure"},
            )
        delivered = sum(1 for result in results.values() if result.success)
        logger.info(
            "Notification dispatched to %s/%s channels",
            delivered,
            len(results),
            extra={"source": payload.source_id, "correlation_id": payload.correlation_id},
        )
        return results

    def _record_suppression(self, payload: NotificationPayload, decision: GateDecision) -> None:
        with self._suppressed_lock:
            self._suppressed[decision.reason] += 1
        self.metrics.inc("alerts_total", labels={"source": payload.source_id, "result": decision.reason})
        log = logger.info if decision.rate_limited or decision.reason == REASON_SHUTDOWN else logger.debug
        log(
            "Notification suppressed: %s",
            decision.reason,
            extra={"source": payload.source_id, "correlation_id": payload.correlation_id},
        )
        self.events.publish(
            EngineEvent(
                ALERT_SUPPRESSED,
                payload.source_id,
                {"payload": payload, "decision": decision, "reason": decision.reason},
            )
        )

    @staticmethod
    def _validate(payload: Any) -> None:
        if not isinstance(payload, NotificationPayload):
            raise PayloadError(f"Expected a NotificationPayload, got {type(payload).__name__}")
        payload.validate()

    # ------------------------------------------------------------------
    # Observers and lifecycle
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.events.subscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self.events.unsubscribe(listener)

    def reset(self, source_id: Optional[str] = None) -> None:
        """Clear state for ``source_id`` or, without one, for every source."""

        self.thresholds.reset(source_id)
        self.health.reset(source_id)
        if source_id is None:
            self.rate_limiter.reset()
            with self._suppressed_lock:
                self._suppressed.clear()
            self.metrics.clear()
        logger.info("Alerting state reset", extra={"source": source_id or "*"})

    def shutdown(self) -> None:
        """Stop scheduling retries and dispatching new notifications."""

        if not self._stop_event.is_set():
            self._stop_event.set()
            logger.info("Alerting engine shutting down")


__all__ = ["AlertingEngine"]
