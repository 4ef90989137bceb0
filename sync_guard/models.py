"""Core records exchanged between the engine components."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, MutableMapping, Optional

from .errors import ErrorKind


class HealthStatus(str, Enum):
    PENDING = "PENDING"
    HEALTHY = "HEALTHY"
    DEGRADED = "DEGRADED"
    UNHEALTHY = "UNHEALTHY"

    @property
    def rank(self) -> int:
        return _HEALTH_RANK[self]


_HEALTH_RANK = {
    HealthStatus.PENDING: 0,
    HealthStatus.HEALTHY: 1,
    HealthStatus.DEGRADED: 2,
    HealthStatus.UNHEALTHY: 3,
}


@dataclass(frozen=True)
class SyncOutcome:
    """Terminal result of one retried sync operation."""

    source_id: str
    success: bool
    timestamp: float = field(default_factory=time.time)
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    correlation_id: Optional[str] = None
    duration: Optional[float] = None
    details: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.source_id:
            raise ValueError("SyncOutcome requires a non-empty source_id")
        if self.timestamp < 0:
            raise ValueError(f"SyncOutcome timestamp must be non-negative, got {self.timestamp}")

    @classmethod
    def from_error(
        cls,
        source_id: str,
        exc: BaseException,
        *,
        kind: ErrorKind,
        timestamp: Optional[float] = None,
        correlation_id: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> "SyncOutcome":
        code = getattr(exc, "code", None)
        details: Dict[str, Any] = {"exception": type(exc).__name__}
        if code is not None:
            details["code"] = str(code)
        return cls(
            source_id=source_id,
            success=False,
            timestamp=time.time() if timestamp is None else timestamp,
            error_kind=kind,
            error_message=str(exc) or type(exc).__name__,
            correlation_id=correlation_id,
            duration=duration,
            details=details,
        )

    def as_dict(self) -> MutableMapping[str, Any]:
        payload: MutableMapping[str, Any] = {
            "source_id": self.source_id,
            "success": self.success,
            "timestamp": self.timestamp,
        }
        if self.error_kind is not None:
            payload["error_kind"] = self.error_kind.value
        if self.error_message is not None:
            payload["error_message"] = self.error_message
        if self.correlation_id is not None:
            payload["correlation_id"] = self.correlation_id
        if self.duration is not None:
            payload["duration"] = self.duration
        if self.details:
            payload["details"] = dict(self.details)
        return payload


__all__ = ["HealthStatus", "SyncOutcome"]
