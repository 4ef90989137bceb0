"""Alert payloads, per-channel formatting, adapters and dispatch."""

from .adapters import (
    ChannelAdapter,
    DiscordWebhookAdapter,
    EmailAdapter,
    SlackWebhookAdapter,
    TeamsWebhookAdapter,
    TelegramBotAdapter,
    build_adapter,
    build_adapters,
)
from .dispatcher import NotificationDispatcher
from .formatting import FormattedMessage, MessageFormatter, format_duration, format_value
from .payload import NotificationPayload, Severity, build_failure_payload, build_test_payload

__all__ = [
    "ChannelAdapter",
    "DiscordWebhookAdapter",
    "EmailAdapter",
    "FormattedMessage",
    "MessageFormatter",
    "NotificationDispatcher",
    "NotificationPayload",
    "Severity",
    "SlackWebhookAdapter",
    "TeamsWebhookAdapter",
    "TelegramBotAdapter",
    "build_adapter",
    "build_adapters",
    "build_failure_payload",
    "build_test_payload",
    "format_duration",
    "format_value",
]
