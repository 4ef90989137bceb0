from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

from sync_guard.errors import ChannelDeliveryError

from .types import DeliveryError, DeliveryResult

logger = logging.getLogger(__name__)


async def execute_with_retries(
    channel: str,
    operation: Callable[[], Awaitable[Optional[Mapping[str, Any]]]],
    *,
    max_retries: int,
    backoff_seconds: float,
    redact: Optional[str] = None,
) -> DeliveryResult:
    """Run ``operation`` until it succeeds or ``max_retries`` extra attempts are spent.

    A :class:`ChannelDeliveryError` flagged as not retryable ends the loop
    immediately. ``redact`` is scrubbed from the reported reason.
    """

    attempts = 0
    last_error: Optional[Exception] = None
    while attempts <= max_retries:
        attempts += 1
        try:
            response = await operation()
            return DeliveryResult(
                channel=channel, success=True, attempts=attempts, response=response
            )
        except Exception as exc:
            last_error = exc
            logger.debug("%s notification attempt %s failed: %s", channel, attempts, exc)
            if isinstance(exc, ChannelDeliveryError) and not exc.retryable:
                break
            if attempts > max_retries:
                break
            await asyncio.sleep(backoff_seconds * attempts)

    assert last_error is not None  # nosec - guarded by loop condition
    if isinstance(last_error, ChannelDeliveryError):
        reason = last_error.reason
        retryable = last_error.retryable
        status_code = last_error.status_code
    else:
        reason = str(last_error) or type(last_error).__name__
        retryable = False
        status_code = None
    if redact:
        reason = reason.replace(redact, "***")
    error = DeliveryError(
        channel=channel,
        reason=reason,
        retryable=retryable,
        status_code=status_code,
        details={"attempts": attempts, "exception": type(last_error).__name__},
    )
    return DeliveryResult(channel=channel, success=False, attempts=attempts, error=error)
