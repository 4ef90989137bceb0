"""Concurrent fan-out of one payload to every configured channel."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any, Dict, List, Optional, Sequence

from services.notifications import DeliveryError, DeliveryResult
from sync_guard.errors import ChannelDeliveryError, PayloadError

from .formatting import FormattedMessage, MessageFormatter
from .payload import NotificationPayload

logger = logging.getLogger(__name__)


def adapter_name(adapter: Any) -> str:
    return str(getattr(adapter, "name", None) or type(adapter).__name__)


def unique_names(adapters: Sequence[Any]) -> List[str]:
    """Return adapter names, suffixing repeats with ``-2``, ``-3`` and so on."""

    seen: Dict[str, int] = {}
    names: List[str] = []
    for adapter in adapters:
        base = adapter_name(adapter)
        count = seen.get(base, 0) + 1
        seen[base] = count
        name = base if count == 1 else f"{base}-{count}"
        while name in names:
            count += 1
            seen[base] = count
            name = f"{base}-{count}"
        names.append(name)
    return names


class NotificationDispatcher:
    """Deliver a payload through every adapter, isolating each failure."""

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        formatter: Optional[MessageFormatter] = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError("Dispatch timeout must be positive")
        self.timeout = timeout
        self._formatter = formatter or MessageFormatter()

    @property
    def formatter(self) -> MessageFormatter:
        return self._formatter

    async def dispatch(
        self,
        payload: NotificationPayload,
        adapters: Sequence[Any],
        formatted: Optional[FormattedMessage] = None,
    ) -> Dict[str, DeliveryResult]:
        """Send ``payload`` to ``adapters`` concurrently.

        Raises :class:`PayloadError` before contacting any adapter when the
        payload is malformed. Channel failures are reported in the returned
        mapping, never raised.
        """

        if not isinstance(payload, NotificationPayload):
            raise PayloadError(
                f"Expected a NotificationPayload, got {type(payload).__name__}"
            )
        payload.validate()
        if not adapters:
            logger.info("No notification channels configured", extra={"source": payload.source_id})
            return {}
        if formatted is None:
            formatted = self._formatter.format(payload)
        names = unique_names(adapters)
        results = await asyncio.gather(
            *(
                self._deliver(name, adapter, payload, formatted)
                for name, adapter in zip(names, adapters)
            )
        )
        return dict(zip(names, results))

    async def _deliver(
        self,
        name: str,
        adapter: Any,
        payload: NotificationPayload,
        formatted: FormattedMessage,
    ) -> DeliveryResult:
        context = {
            "channel": name,
            "source": payload.source_id,
            "correlation_id": payload.correlation_id,
        }
        try:
            result = await asyncio.wait_for(adapter.send(payload, formatted), self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Notification to %s timed out after %.1fs", name, self.timeout, extra=context)
            return DeliveryResult(
                channel=name,
                success=False,
                attempts=1,
                error=DeliveryError(
                    channel=name,
                    reason=f"timed out after {self.timeout:g}s",
                    retryable=True,
                ),
            )
        except ChannelDeliveryError as exc:
            logger.warning("Notification to %s failed: %s", name, exc.reason, extra=context)
            return DeliveryResult(
                channel=name,
                success=False,
                attempts=1,
                error=DeliveryError(
                    channel=name,
                    reason=exc.reason,
                    retryable=exc.retryable,
                    status_code=exc.status_code,
                ),
            )
        except Exception as exc:
            logger.warning(
                "Notification to %s raised %s", name, type(exc).__name__, extra=context, exc_info=True
            )
            return DeliveryResult(
                channel=name,
                success=False,
                attempts=1,
                error=DeliveryError(
                    channel=name,
                    reason=str(exc) or type(exc).__name__,
                    retryable=False,
                    details={"exception": type(exc).__name__},
                ),
            )

        if result.channel != name:
            result = dataclasses.replace(result, channel=name)
        if result.success:
            logger.info("Notification sent via %s", name, extra={**context, "attempts": result.attempts})
        else:
            reason = result.error.reason if result.error else "unknown error"
            logger.warning("Notification to %s failed: %s", name, reason, extra=context)
        return result


__all__ = ["NotificationDispatcher", "adapter_name", "unique_names"]
