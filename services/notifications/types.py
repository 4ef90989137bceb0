from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


@dataclass
class DeliveryError:
    channel: str
    reason: str
    retryable: bool
    status_code: Optional[int] = None
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class DeliveryResult:
    channel: str
    success: bool
    attempts: int
    error: Optional[DeliveryError] = None
    response: Optional[Mapping[str, Any]] = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "channel": self.channel,
            "success": self.success,
            "attempts": self.attempts,
        }
        if self.error is not None:
            payload["error"] = {
                "reason": self.error.reason,
                "retryable": self.error.retryable,
                "status_code": self.error.status_code,
            }
        if self.response is not None:
            payload["response"] = dict(self.response)
        return payload
