from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, List, Optional, Tuple, Union
from urllib.parse import urlparse

from sync_guard.errors import ConfigurationError, ErrorKind

DEFAULT_RETRYABLE_KINDS: FrozenSet[ErrorKind] = frozenset(
    {
        ErrorKind.CONNECTION_REFUSED,
        ErrorKind.HOST_UNREACHABLE,
        ErrorKind.TIMEOUT,
        ErrorKind.RATE_LIMITED,
    }
)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff settings for a sync operation."""

    max_attempts: int = 5
    base_delay: float = 3.0
    jitter_max: float = 0.0
    retryable_error_kinds: FrozenSet[ErrorKind] = DEFAULT_RETRYABLE_KINDS

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ConfigurationError(f"max_attempts must be >= 0, got {self.max_attempts}")
        if self.base_delay < 0 or self.jitter_max < 0:
            raise ConfigurationError("Retry delays must be non-negative")
        object.__setattr__(
            self,
            "retryable_error_kinds",
            frozenset(ErrorKind.parse(kind) for kind in self.retryable_error_kinds),
        )


@dataclass(frozen=True)
class ThresholdConfig:
    """Alert conditions expressed as a failure streak and a windowed failure rate."""

    consecutive_failure_limit: int = 3
    failure_rate_limit: float = 0.5
    window_duration: float = 3600.0
    window_max_samples: int = 100

    def __post_init__(self) -> None:
        if self.consecutive_failure_limit < 1:
            raise ConfigurationError("consecutive_failure_limit must be at least 1")
        if not 0.0 <= self.failure_rate_limit <= 1.0:
            raise ConfigurationError(
                f"failure_rate_limit must be within [0, 1], got {self.failure_rate_limit}"
            )
        if self.window_duration <= 0 or self.window_max_samples < 1:
            raise ConfigurationError("Threshold window must have a positive duration and size")


@dataclass(frozen=True)
class RateLimitConfig:
    """Global notification budget: minimum spacing and a rolling cap."""

    min_interval: float = 900.0
    max_per_period: int = 4
    period_duration: float = 3600.0

    def __post_init__(self) -> None:
        if self.min_interval < 0:
            raise ConfigurationError("min_interval must be non-negative")
        if self.max_per_period < 1 or self.period_duration <= 0:
            raise ConfigurationError("Rate limit period must allow at least one dispatch")


@dataclass(frozen=True)
class HealthConfig:
    """Success-rate cut-offs for the coarse health status."""

    healthy_threshold: float = 0.5
    degraded_threshold: float = 0.01
    window_duration: float = 86400.0
    window_max_samples: int = 50

    def __post_init__(self) -> None:
        if not 0.0 <= self.degraded_threshold <= self.healthy_threshold <= 1.0:
            raise ConfigurationError(
                "Health thresholds must satisfy 0 <= degraded_threshold <= healthy_threshold <= 1"
            )
        if self.window_duration <= 0 or self.window_max_samples < 1:
            raise ConfigurationError("Health window must have a positive duration and size")


def _require(value: Optional[str], message: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ConfigurationError(message)
    return text


def _require_url(url: str, channel: str) -> str:
    text = _require(url, f"{channel} requires a webhook url")
    parsed = urlparse(text)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ConfigurationError(f"{channel} webhook url is malformed")
    return text


@dataclass(frozen=True)
class EmailChannel:
    """SMTP configuration used to dispatch alert emails."""

    host: str
    sender: str
    recipients: Tuple[str, ...]
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    use_ssl: bool = False
    name: str = "email"

    def __post_init__(self) -> None:
        _require(self.host, "Email channel requires an SMTP host")
        _require(self.sender, "Email channel requires a sender address")
        recipients = tuple(address.strip() for address in self.recipients if address and address.strip())
        if not recipients:
            raise ConfigurationError("Email channel requires at least one recipient")
        object.__setattr__(self, "recipients", recipients)
        if not 0 < int(self.port) < 65536:
            raise ConfigurationError(f"Invalid SMTP port: {self.port}")
        if self.use_tls and self.use_ssl:
            raise ConfigurationError("Email channel cannot use both STARTTLS and implicit SSL")
        if bool(self.username) != bool(self.password):
            raise ConfigurationError("Email credentials require both username and password")


@dataclass(frozen=True)
class SlackWebhookChannel:
    url: str
    name: str = "slack"

    def __post_init__(self) -> None:
        _require_url(self.url, "Slack")


@dataclass(frozen=True)
class DiscordWebhookChannel:
    url: str
    name: str = "discord"

    def __post_init__(self) -> None:
        _require_url(self.url, "Discord")


@dataclass(frozen=True)
class TeamsWebhookChannel:
    url: str
    name: str = "teams"

    def __post_init__(self) -> None:
        _require_url(self.url, "Teams")


@dataclass(frozen=True)
class TelegramBotChannel:
    bot_token: str
    chat_id: str
    name: str = "telegram"

    def __post_init__(self) -> None:
        token = _require(self.bot_token, "Telegram channel requires a bot token")
        if ":" not in token:
            raise ConfigurationError("Telegram bot token must look like '<id>:<secret>'")
        _require(str(self.chat_id), "Telegram channel requires a chat id")


ChannelConfig = Union[
    EmailChannel,
    SlackWebhookChannel,
    DiscordWebhookChannel,
    TeamsWebhookChannel,
    TelegramBotChannel,
]


@dataclass()
class AlertingConfig:
    """Top level configuration for the alerting engine."""

    retry: RetryPolicy = field(default_factory=RetryPolicy)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    channels: List[ChannelConfig] = field(default_factory=list)
    dispatch_timeout: float = 10.0
    outcome_log_path: Optional[Path] = None
    debug_level: int = 1


__all__ = [
    "AlertingConfig",
    "ChannelConfig",
    "DEFAULT_RETRYABLE_KINDS",
    "DiscordWebhookChannel",
    "EmailChannel",
    "HealthConfig",
    "RateLimitConfig",
    "RetryPolicy",
    "SlackWebhookChannel",
    "TeamsWebhookChannel",
    "TelegramBotChannel",
    "ThresholdConfig",
]
