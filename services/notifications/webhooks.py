from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

import httpx

from sync_guard.errors import ChannelDeliveryError

from ._retry import execute_with_retries
from .types import DeliveryResult

logger = logging.getLogger(__name__)

_MAX_BODY_CHARS = 200


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def raise_for_delivery_status(channel: str, status_code: int, text: str) -> None:
    if 200 <= status_code < 300:
        return
    raise ChannelDeliveryError(
        channel,
        f"HTTP {status_code}: {(text or '').strip()[:_MAX_BODY_CHARS]}",
        retryable=_is_retryable_status(status_code),
        status_code=status_code,
    )


async def post_webhook(
    channel: str,
    url: str,
    payload: Mapping[str, Any],
    *,
    max_retries: int = 2,
    backoff_seconds: float = 0.5,
    timeout: float = 10.0,
) -> DeliveryResult:
    """POST ``payload`` as JSON to an incoming webhook."""

    async def _dispatch() -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, json=dict(payload))
        raise_for_delivery_status(channel, response.status_code, response.text)
        logger.debug("%s webhook accepted notification", channel, extra={"channel": channel})
        return {"status_code": response.status_code}

    return await execute_with_retries(
        channel,
        _dispatch,
        max_retries=max_retries,
        backoff_seconds=backoff_seconds,
        redact=url,
    )
