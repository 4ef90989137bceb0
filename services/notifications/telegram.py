from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from sync_guard.errors import ChannelDeliveryError

from ._retry import execute_with_retries
from .types import DeliveryResult
from .webhooks import raise_for_delivery_status

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


async def send_telegram_message(
    token: str,
    chat_id: str,
    message: str,
    *,
    parse_mode: str = "MarkdownV2",
    request_func=None,
    max_retries: int = 2,
    backoff_seconds: float = 0.5,
    timeout: float = 10.0,
) -> DeliveryResult:
    """Send a Telegram message through the Bot API with retry and backoff."""

    url = f"{TELEGRAM_API_URL}/bot{token}/sendMessage"
    payload = {
        "chat_id": chat_id,
        "text": message,
        "parse_mode": parse_mode,
        "disable_web_page_preview": True,
    }

    async def _dispatch() -> Mapping[str, Any]:
        if request_func is not None:
            return await request_func(url, payload)
        return await _post_message(url, payload, timeout)

    return await execute_with_retries(
        "telegram",
        _dispatch,
        max_retries=max_retries,
        backoff_seconds=backoff_seconds,
        redact=token,
    )


async def _post_message(url: str, payload: Mapping[str, Any], timeout: float) -> Mapping[str, Any]:
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(url, json=dict(payload))
    raise_for_delivery_status("telegram", response.status_code, response.text)
    data = response.json()
    if not data.get("ok", True):
        raise ChannelDeliveryError(
            "telegram",
            f"telegram returned failure: {data.get('description', data)}",
            retryable=False,
        )
    return data
