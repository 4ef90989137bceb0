"""Run sync operations through the engine and alert on terminal failures."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from services.notifications import DeliveryResult
from sync_guard.config.models import RetryPolicy
from sync_guard.models import SyncOutcome

from .core import AlertingEngine
from .gate import GateDecision
from .retry import Operation

logger = logging.getLogger(__name__)


@dataclass
class SyncCycleResult:
    outcome: SyncOutcome
    value: Any = None
    deliveries: Dict[str, DeliveryResult] = field(default_factory=dict)
    gate: Optional[GateDecision] = None
    error: Optional[BaseException] = None

    @property
    def success(self) -> bool:
        return self.outcome.success


async def run_sync(
    engine: AlertingEngine,
    source_id: str,
    operation: Operation[Any],
    policy: Optional[RetryPolicy] = None,
    *,
    correlation_id: Optional[str] = None,
) -> SyncCycleResult:
    """Execute one sync with retries, record its outcome and alert when warranted.

    Sync failures are reported through the returned result, never raised.
    """

    correlation_id = correlation_id or str(uuid.uuid4())
    context = {"source": source_id, "correlation_id": correlation_id}
    logger.info("Starting sync for %s", source_id, extra=context)

    value, outcome, error = await engine.retry_executor.run_outcome(
        source_id,
        operation,
        policy,
        correlation_id=correlation_id,
        clock=engine.clock,
    )
    engine.record(outcome)

    if outcome.success:
        logger.info(
            "Sync completed for %s in %.2fs", source_id, outcome.duration or 0.0, extra=context
        )
        return SyncCycleResult(outcome=outcome, value=value)

    logger.error(
        "Sync failed for %s: %s",
        source_id,
        outcome.error_message,
        extra={**context, "error_kind": outcome.error_kind.value if outcome.error_kind else None},
    )
    decision, deliveries = await engine.dispatch_outcome(outcome)
    return SyncCycleResult(
        outcome=outcome,
        deliveries=deliveries,
        gate=decision,
        error=error,
    )


async def run_all(
    engine: AlertingEngine,
    operations: Mapping[str, Operation[Any]],
    policy: Optional[RetryPolicy] = None,
) -> Dict[str, SyncCycleResult]:
    """Run every source's sync concurrently."""

    source_ids = list(operations)
    results = await asyncio.gather(
        *(run_sync(engine, source_id, operations[source_id], policy) for source_id in source_ids)
    )
    failed = sum(1 for result in results if not result.success)
    logger.info("Sync cycle finished: %s/%s sources failed", failed, len(results))
    return dict(zip(source_ids, results))


__all__ = ["SyncCycleResult", "run_all", "run_sync"]
