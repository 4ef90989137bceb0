"""Exponential backoff with jitter around fallible sync operations."""

from __future__ import annotations

import asyncio
import errno
import logging
import random
import socket
import threading
import time
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar, Union

import httpx

from sync_guard.config.models import RetryPolicy
from sync_guard.errors import ErrorKind, FatalError
from sync_guard.models import SyncOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Union[Awaitable[T], T]]

_CODE_KINDS = {
    "ECONNREFUSED": ErrorKind.CONNECTION_REFUSED,
    "ECONNRESET": ErrorKind.CONNECTION_RESET,
    "EHOSTUNREACH": ErrorKind.HOST_UNREACHABLE,
    "ENETUNREACH": ErrorKind.HOST_UNREACHABLE,
    "ENOTFOUND": ErrorKind.HOST_UNREACHABLE,
    "EAI_AGAIN": ErrorKind.HOST_UNREACHABLE,
    "ETIMEDOUT": ErrorKind.TIMEOUT,
    "ESOCKETTIMEDOUT": ErrorKind.TIMEOUT,
    "RATE_LIMIT_EXCEEDED": ErrorKind.RATE_LIMITED,
    "RATE_LIMITED": ErrorKind.RATE_LIMITED,
    "429": ErrorKind.RATE_LIMITED,
    "NETWORK_FAILURE": ErrorKind.NETWORK_FAILURE,
    "UNAUTHORIZED": ErrorKind.AUTHENTICATION,
    "401": ErrorKind.AUTHENTICATION,
    "403": ErrorKind.AUTHENTICATION,
}

_ERRNO_KINDS = {
    errno.ECONNREFUSED: ErrorKind.CONNECTION_REFUSED,
    errno.ECONNRESET: ErrorKind.CONNECTION_RESET,
    errno.EHOSTUNREACH: ErrorKind.HOST_UNREACHABLE,
    errno.ENETUNREACH: ErrorKind.HOST_UNREACHABLE,
    errno.ETIMEDOUT: ErrorKind.TIMEOUT,
}


def classify_error(exc: BaseException) -> ErrorKind:
    """Return the stable :class:`ErrorKind` for ``exc``.

    A known ``kind`` attribute wins, then ``category``/``code`` attributes
    as reported by sync SDKs, then well-known exception types.
    """

    kind = getattr(exc, "kind", None)
    if kind is not None:
        try:
            parsed = ErrorKind.parse(kind)
        except ValueError:
            parsed = ErrorKind.UNKNOWN
        if parsed is not ErrorKind.UNKNOWN:
            return parsed

    for attribute in ("category", "code"):
        value = getattr(exc, attribute, None)
        if value is None:
            continue
        mapped = _CODE_KINDS.get(str(value).upper())
        if mapped is not None:
            return mapped

    if str(exc) == "network-failure":
        return ErrorKind.NETWORK_FAILURE
    if isinstance(exc, httpx.TimeoutException):
        return ErrorKind.TIMEOUT
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 429:
            return ErrorKind.RATE_LIMITED
        if status in (401, 403):
            return ErrorKind.AUTHENTICATION
        if 400 <= status < 500:
            return ErrorKind.INVALID_REQUEST
        return ErrorKind.NETWORK_FAILURE
    if isinstance(exc, httpx.ConnectError):
        return ErrorKind.CONNECTION_REFUSED
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, ConnectionRefusedError):
        return ErrorKind.CONNECTION_REFUSED
    if isinstance(exc, ConnectionResetError):
        return ErrorKind.CONNECTION_RESET
    if isinstance(exc, socket.gaierror):
        return ErrorKind.HOST_UNREACHABLE
    if isinstance(exc, OSError) and exc.errno in _ERRNO_KINDS:
        return _ERRNO_KINDS[exc.errno]
    return ErrorKind.UNKNOWN


def compute_delay(policy: RetryPolicy, attempt_index: int, rng: random.Random) -> float:
    jitter = rng.uniform(0.0, policy.jitter_max) if policy.jitter_max > 0 else 0.0
    return policy.base_delay * (2 ** attempt_index) + jitter


class RetryExecutor:
    """Run operations with bounded retries for transient failures only."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._stop_event = stop_event or threading.Event()

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    def is_retryable(self, exc: BaseException, policy: RetryPolicy) -> bool:
        if isinstance(exc, FatalError):
            return False
        return classify_error(exc) in policy.retryable_error_kinds

    async def run(self, operation: Operation[T], policy: Optional[RetryPolicy] = None) -> T:
        """Invoke ``operation`` up to ``max_attempts + 1`` times.

        The final exception is re-raised as-is so callers see the original
        kind and message.
        """

        selected = policy or self.policy
        attempt = 0
        while True:
            try:
                result = operation()
                if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
                    result = await result
                return result
            except Exception as exc:
                kind = classify_error(exc)
                retryable = self.is_retryable(exc, selected)
                if not retryable:
                    logger.error(
                        "Not a retryable error, not retrying",
                        extra={"attempt": attempt + 1, "error_kind": kind.value, "error": str(exc)},
                    )
                    raise
                if attempt >= selected.max_attempts:
                    logger.error(
                        "Max retries reached",
                        extra={"attempts": attempt + 1, "error_kind": kind.value, "error": str(exc)},
                    )
                    raise
                if self._stop_event.is_set():
                    logger.warning(
                        "Shutdown requested, abandoning retries",
                        extra={"attempt": attempt + 1, "error_kind": kind.value},
                    )
                    raise
                delay = compute_delay(selected, attempt, self._rng)
                logger.warning(
                    "Attempt %s failed with %s, retrying in %.2fs",
                    attempt + 1,
                    kind.value,
                    delay,
                    extra={"attempt": attempt + 1, "error_kind": kind.value, "delay": delay},
                )
                await self._sleep(delay)
                if self._stop_event.is_set():
                    logger.warning(
                        "Shutdown requested during backoff, abandoning retries",
                        extra={"attempt": attempt + 1, "error_kind": kind.value},
                    )
                    raise exc
                attempt += 1

    async def run_outcome(
        self,
        source_id: str,
        operation: Operation[T],
        policy: Optional[RetryPolicy] = None,
        *,
        correlation_id: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> Tuple[Optional[T], SyncOutcome, Optional[BaseException]]:
        """Run ``operation`` and describe its terminal result as a :class:`SyncOutcome`."""

        started = time.perf_counter()
        try:
            value = await self.run(operation, policy)
        except Exception as exc:
            duration = time.perf_counter() - started
            outcome = SyncOutcome.from_error(
                source_id,
                exc,
                kind=classify_error(exc),
                timestamp=clock(),
                correlation_id=correlation_id,
                duration=duration,
            )
            return None, outcome, exc
        duration = time.perf_counter() - started
        outcome = SyncOutcome(
            source_id=source_id,
            success=True,
            timestamp=clock(),
            correlation_id=correlation_id,
            duration=duration,
        )
        return value, outcome, None


__all__ = ["RetryExecutor", "classify_error", "compute_delay"]
