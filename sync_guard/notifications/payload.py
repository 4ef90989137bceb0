"""Channel-neutral alert payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, Optional

from sync_guard.errors import PayloadError
from sync_guard.models import SyncOutcome

if TYPE_CHECKING:  # pragma: no cover
    from sync_guard.engine.thresholds import ThresholdResult

_FIELD_TYPES = (str, int, float, timedelta, datetime)


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class NotificationPayload:
    """Immutable description of one alert, rendered per channel by the formatter."""

    source_id: str
    severity: Severity
    summary: str
    fields: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.severity, str) and not isinstance(self.severity, Severity):
            try:
                object.__setattr__(self, "severity", Severity(self.severity.lower()))
            except ValueError as exc:
                raise PayloadError(f"Unknown severity {self.severity!r}") from exc
        if not isinstance(self.fields, Mapping):
            raise PayloadError("Payload fields must be a mapping of label to value")
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        self.validate()

    def validate(self) -> None:
        if not isinstance(self.source_id, str) or not self.source_id.strip():
            raise PayloadError("Payload requires a non-empty source_id")
        if not isinstance(self.severity, Severity):
            raise PayloadError(f"Payload severity must be a Severity, got {self.severity!r}")
        if not isinstance(self.summary, str) or not self.summary.strip():
            raise PayloadError("Payload requires a non-empty summary")
        if not isinstance(self.timestamp, datetime):
            raise PayloadError("Payload timestamp must be a datetime")
        for label, value in self.fields.items():
            if not isinstance(label, str) or not label.strip():
                raise PayloadError(f"Payload field labels must be non-empty strings, got {label!r}")
            if value is not None and not isinstance(value, _FIELD_TYPES):
                raise PayloadError(
                    f"Unsupported value for field {label!r}: {type(value).__name__}"
                )

    @property
    def title(self) -> str:
        return self.summary


def _triggered_by(thresholds: ThresholdResult) -> str:
    reasons = []
    if thresholds.consecutive_exceeded:
        reasons.append("consecutive failure threshold")
    if thresholds.rate_exceeded:
        reasons.append("failure rate threshold")
    return " and ".join(reasons) or "none"


def build_failure_payload(
    outcome: SyncOutcome,
    thresholds: ThresholdResult,
) -> NotificationPayload:
    """Describe a failed sync plus the threshold state that raised the alert."""

    occurred_at = datetime.fromtimestamp(outcome.timestamp, tz=timezone.utc)
    fields: dict[str, Any] = {
        "Server": outcome.source_id,
        "Time": occurred_at,
        "Error": outcome.error_message or "unknown error",
    }
    if outcome.error_kind is not None:
        fields["Error Kind"] = outcome.error_kind.value
    code = outcome.details.get("code") if outcome.details else None
    if code:
        fields["Code"] = str(code)
    if outcome.correlation_id:
        fields["Correlation ID"] = outcome.correlation_id
    if outcome.duration is not None:
        fields["Duration"] = timedelta(seconds=outcome.duration)
    fields["Consecutive Failures"] = thresholds.consecutive_count
    fields["Failure Rate"] = f"{thresholds.failure_rate * 100:.1f}%"
    fields["Triggered By"] = _triggered_by(thresholds)

    severity = (
        Severity.CRITICAL
        if thresholds.consecutive_exceeded and thresholds.rate_exceeded
        else Severity.ERROR
    )
    return NotificationPayload(
        source_id=outcome.source_id,
        severity=severity,
        summary=f"Sync Error: {outcome.source_id}",
        fields=fields,
        timestamp=occurred_at,
        correlation_id=outcome.correlation_id,
    )


def build_test_payload(source_id: str = "sync-guard") -> NotificationPayload:
    """Payload used to verify channel wiring without tripping any thresholds."""

    now = datetime.now(timezone.utc)
    return NotificationPayload(
        source_id=source_id,
        severity=Severity.INFO,
        summary="Test Notification",
        fields={
            "Server": source_id,
            "Time": now,
            "Message": "Notification channels are configured correctly.",
        },
        timestamp=now,
    )


__all__ = [
    "NotificationPayload",
    "Severity",
    "build_failure_payload",
    "build_test_payload",
]
