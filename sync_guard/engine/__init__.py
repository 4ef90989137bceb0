"""Retry, threshold, health and rate-limit state machines plus the engine facade."""

from .core import AlertingEngine
from .gate import GateDecision, NotificationGate
from .health import HealthStateTracker
from .metrics import MetricRegistry, Timer
from .rate_limiter import RateLimiter
from .retry import RetryExecutor, classify_error, compute_delay
from .sync_loop import SyncCycleResult, run_all, run_sync
from .thresholds import ThresholdEvaluator, ThresholdResult
from .window import SlidingWindow

__all__ = [
    "AlertingEngine",
    "GateDecision",
    "HealthStateTracker",
    "MetricRegistry",
    "NotificationGate",
    "RateLimiter",
    "RetryExecutor",
    "SlidingWindow",
    "SyncCycleResult",
    "ThresholdEvaluator",
    "ThresholdResult",
    "Timer",
    "classify_error",
    "compute_delay",
    "run_all",
    "run_sync",
]
