"""Error taxonomy shared by the retry executor, adapters and configuration."""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional


class ErrorKind(str, Enum):
    """Stable classification of a sync failure."""

    CONNECTION_REFUSED = "connection_refused"
    CONNECTION_RESET = "connection_reset"
    HOST_UNREACHABLE = "host_unreachable"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    NETWORK_FAILURE = "network_failure"
    AUTHENTICATION = "authentication"
    INVALID_REQUEST = "invalid_request"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "ErrorKind":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower().replace("-", "_")
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"Unknown error kind: {value!r}")


class SyncGuardError(Exception):
    """Base class for every error raised by this package."""


class SyncError(SyncGuardError):
    """A failure reported by a sync source, carrying a stable ``kind``."""

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        code: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.kind = ErrorKind.parse(kind)
        self.code = code
        self.details = dict(details or {})


class TransientError(SyncError):
    """A failure that may succeed on retry, subject to the retry policy."""


class FatalError(SyncError):
    """A failure that must never be retried."""


class ChannelDeliveryError(SyncGuardError):
    """Delivery to a single notification channel failed."""

    def __init__(
        self,
        channel: str,
        reason: str,
        *,
        retryable: bool = False,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(f"{channel}: {reason}")
        self.channel = channel
        self.reason = reason
        self.retryable = retryable
        self.status_code = status_code


class ConfigurationError(SyncGuardError, ValueError):
    """Configuration is missing or invalid."""


class PayloadError(SyncGuardError, ValueError):
    """A notification payload is malformed and cannot be dispatched."""


__all__ = [
    "ChannelDeliveryError",
    "ConfigurationError",
    "ErrorKind",
    "FatalError",
    "PayloadError",
    "SyncError",
    "SyncGuardError",
    "TransientError",
]
