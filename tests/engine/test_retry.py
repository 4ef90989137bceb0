import asyncio
import socket
import threading

import httpx
import pytest

from sync_guard.config.models import RetryPolicy
from sync_guard.engine.retry import RetryExecutor, classify_error, compute_delay
from sync_guard.errors import ErrorKind, FatalError, SyncError, TransientError


class RecordingSleeper:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay):
        self.delays.append(delay)


class MaxRandom:
    def uniform(self, low, high):
        return high


def _failing(error, counter):
    async def operation():
        counter.append(1)
        raise error

    return operation


def test_transient_error_exhausts_attempts_and_reraises_same_object():
    sleeper = RecordingSleeper()
    executor = RetryExecutor(RetryPolicy(max_attempts=3, base_delay=0.1), sleep=sleeper)
    error = TransientError("connection refused", kind=ErrorKind.CONNECTION_REFUSED)
    calls: list[int] = []

    with pytest.raises(TransientError) as excinfo:
        asyncio.run(executor.run(_failing(error, calls)))

    assert excinfo.value is error
    assert len(calls) == 4
    assert sleeper.delays == pytest.approx([0.1, 0.2, 0.4])


def test_fatal_error_is_never_retried():
    sleeper = RecordingSleeper()
    executor = RetryExecutor(RetryPolicy(max_attempts=3, base_delay=0.1), sleep=sleeper)
    error = FatalError("bad credentials", kind=ErrorKind.CONNECTION_REFUSED)
    calls: list[int] = []

    with pytest.raises(FatalError) as excinfo:
        asyncio.run(executor.run(_failing(error, calls)))

    assert excinfo.value is error
    assert len(calls) == 1
    assert sleeper.delays == []


def test_unclassified_error_is_not_retried():
    sleeper = RecordingSleeper()
    executor = RetryExecutor(RetryPolicy(max_attempts=5, base_delay=1), sleep=sleeper)
    calls: list[int] = []

    with pytest.raises(ValueError):
        asyncio.run(executor.run(_failing(ValueError("corrupt budget file"), calls)))

    assert len(calls) == 1
    assert sleeper.delays == []


def test_success_short_circuits_after_transient_failures():
    sleeper = RecordingSleeper()
    executor = RetryExecutor(RetryPolicy(max_attempts=5, base_delay=0.5), sleep=sleeper)
    attempts = 0

    async def flaky():
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            raise TimeoutError("timed out")
        return "synced"

    assert asyncio.run(executor.run(flaky)) == "synced"
    assert attempts == 3
    assert sleeper.delays == pytest.approx([0.5, 1.0])


def test_plain_callables_are_supported():
    executor = RetryExecutor(RetryPolicy(max_attempts=0), sleep=RecordingSleeper())

    assert asyncio.run(executor.run(lambda: 42)) == 42


def test_zero_max_attempts_runs_once():
    sleeper = RecordingSleeper()
    executor = RetryExecutor(RetryPolicy(max_attempts=0, base_delay=1), sleep=sleeper)
    calls: list[int] = []

    with pytest.raises(ConnectionRefusedError):
        asyncio.run(executor.run(_failing(ConnectionRefusedError("refused"), calls)))

    assert len(calls) == 1
    assert sleeper.delays == []


def test_error_code_attribute_drives_retry():
    class SdkError(Exception):
        def __init__(self, message, code):
            super().__init__(message)
            self.code = code

    sleeper = RecordingSleeper()
    executor = RetryExecutor(RetryPolicy(max_attempts=2, base_delay=1), sleep=sleeper)
    calls: list[int] = []

    with pytest.raises(SdkError):
        asyncio.run(executor.run(_failing(SdkError("connect failed", "ECONNREFUSED"), calls)))

    assert len(calls) == 3
    assert sleeper.delays == [1, 2]


def test_policy_override_per_call():
    sleeper = RecordingSleeper()
    executor = RetryExecutor(RetryPolicy(max_attempts=5, base_delay=1), sleep=sleeper)
    calls: list[int] = []

    with pytest.raises(TimeoutError):
        asyncio.run(
            executor.run(
                _failing(TimeoutError("slow"), calls),
                RetryPolicy(max_attempts=1, base_delay=0.25),
            )
        )

    assert len(calls) == 2
    assert sleeper.delays == [0.25]


def test_shutdown_prevents_new_retries():
    sleeper = RecordingSleeper()
    executor = RetryExecutor(RetryPolicy(max_attempts=3, base_delay=1), sleep=sleeper)
    executor.stop_event.set()
    calls: list[int] = []
    error = TransientError("refused", kind="connection-refused")

    with pytest.raises(TransientError) as excinfo:
        asyncio.run(executor.run(_failing(error, calls)))

    assert excinfo.value is error
    assert len(calls) == 1
    assert sleeper.delays == []


def test_shutdown_during_backoff_skips_the_next_attempt():
    stop_event = threading.Event()
    delays: list[float] = []

    async def stopping_sleeper(delay):
        delays.append(delay)
        stop_event.set()

    executor = RetryExecutor(
        RetryPolicy(max_attempts=3, base_delay=1), sleep=stopping_sleeper, stop_event=stop_event
    )
    calls: list[int] = []
    error = TransientError("refused", kind="connection-refused")

    with pytest.raises(TransientError) as excinfo:
        asyncio.run(executor.run(_failing(error, calls)))

    assert excinfo.value is error
    assert len(calls) == 1
    assert delays == [1]


def test_compute_delay_adds_bounded_jitter():
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, jitter_max=0.5)

    assert compute_delay(policy, 0, MaxRandom()) == pytest.approx(1.5)
    assert compute_delay(policy, 2, MaxRandom()) == pytest.approx(4.5)


def test_run_outcome_describes_failure_without_raising():
    executor = RetryExecutor(RetryPolicy(max_attempts=1, base_delay=0), sleep=RecordingSleeper())
    error = SyncError("host down", code="EHOSTUNREACH")

    value, outcome, exc = asyncio.run(
        executor.run_outcome("budget-a", _failing(error, []), correlation_id="cid-1", clock=lambda: 100.0)
    )

    assert value is None
    assert exc is error
    assert outcome.success is False
    assert outcome.source_id == "budget-a"
    assert outcome.error_kind == ErrorKind.HOST_UNREACHABLE
    assert outcome.error_message == "host down"
    assert outcome.correlation_id == "cid-1"
    assert outcome.timestamp == 100.0
    assert outcome.details["code"] == "EHOSTUNREACH"


def test_run_outcome_success():
    executor = RetryExecutor(RetryPolicy(max_attempts=0), sleep=RecordingSleeper())

    value, outcome, exc = asyncio.run(executor.run_outcome("budget-a", lambda: {"accounts": 3}))

    assert value == {"accounts": 3}
    assert exc is None
    assert outcome.success is True
    assert outcome.duration is not None and outcome.duration >= 0


@pytest.mark.parametrize(
    "error, expected",
    [
        (ConnectionRefusedError("refused"), ErrorKind.CONNECTION_REFUSED),
        (ConnectionResetError("reset"), ErrorKind.CONNECTION_RESET),
        (TimeoutError("slow"), ErrorKind.TIMEOUT),
        (socket.gaierror("no such host"), ErrorKind.HOST_UNREACHABLE),
        (Exception("network-failure"), ErrorKind.NETWORK_FAILURE),
        (SyncError("limited", code="RATE_LIMIT_EXCEEDED"), ErrorKind.RATE_LIMITED),
        (SyncError("explicit", kind=ErrorKind.AUTHENTICATION, code="ECONNREFUSED"), ErrorKind.AUTHENTICATION),
        (httpx.ConnectTimeout("connect timed out"), ErrorKind.TIMEOUT),
        (RuntimeError("boom"), ErrorKind.UNKNOWN),
    ],
)
def test_classify_error(error, expected):
    assert classify_error(error) == expected


def test_classify_http_status_errors():
    request = httpx.Request("GET", "https://budget.example.test/sync")

    def status_error(code):
        response = httpx.Response(code, request=request)
        return httpx.HTTPStatusError("status", request=request, response=response)

    assert classify_error(status_error(429)) == ErrorKind.RATE_LIMITED
    assert classify_error(status_error(401)) == ErrorKind.AUTHENTICATION
    assert classify_error(status_error(404)) == ErrorKind.INVALID_REQUEST
    assert classify_error(status_error(503)) == ErrorKind.NETWORK_FAILURE
