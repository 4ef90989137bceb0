"""Channel adapters delivering formatted alerts to external services."""

from __future__ import annotations

import abc
import logging
from typing import Any, Dict, Iterable, List, Optional, Type

from services.notifications import (
    DeliveryResult,
    post_webhook,
    send_email_message,
    send_telegram_message,
)
from sync_guard.config.models import (
    ChannelConfig,
    DiscordWebhookChannel,
    EmailChannel,
    SlackWebhookChannel,
    TeamsWebhookChannel,
    TelegramBotChannel,
)
from sync_guard.errors import ConfigurationError

from .formatting import FormattedMessage
from .payload import NotificationPayload

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 2


class ChannelAdapter(abc.ABC):
    """Deliver one formatted alert to a single channel."""

    config_type: Type[Any] = object

    def __init__(
        self,
        config: Any,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_seconds: float = 0.5,
        timeout: float = 10.0,
    ) -> None:
        if not isinstance(config, self.config_type):
            raise ConfigurationError(
                f"{type(self).__name__} requires a {self.config_type.__name__}, "
                f"got {type(config).__name__}"
            )
        if max_retries < 0:
            raise ConfigurationError("max_retries must be non-negative")
        self._config = config
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> Any:
        return self._config

    @abc.abstractmethod
    async def send(self, payload: NotificationPayload, formatted: FormattedMessage) -> DeliveryResult:
        """Deliver ``formatted`` and describe the attempt."""

    def _retry_kwargs(self) -> Dict[str, Any]:
        return {
            "max_retries": self.max_retries,
            "backoff_seconds": self.backoff_seconds,
            "timeout": self.timeout,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class EmailAdapter(ChannelAdapter):
    config_type = EmailChannel

    async def send(self, payload: NotificationPayload, formatted: FormattedMessage) -> DeliveryResult:
        config: EmailChannel = self._config
        return await send_email_message(
            smtp_server=config.host,
            smtp_port=config.port,
            from_address=config.sender,
            to_addresses=config.recipients,
            subject=formatted.subject,
            body=formatted.plain_text,
            html_body=formatted.html,
            username=config.username,
            password=config.password,
            use_tls=config.use_tls,
            use_ssl=config.use_ssl,
            **self._retry_kwargs(),
        )


class _WebhookAdapter(ChannelAdapter):
    def _body(self, formatted: FormattedMessage) -> Dict[str, Any]:  # pragma: no cover - abstract
        raise NotImplementedError

    async def send(self, payload: NotificationPayload, formatted: FormattedMessage) -> DeliveryResult:
        return await post_webhook(
            self.name,
            self._config.url,
            self._body(formatted),
            **self._retry_kwargs(),
        )


class SlackWebhookAdapter(_WebhookAdapter):
    config_type = SlackWebhookChannel

    def _body(self, formatted: FormattedMessage) -> Dict[str, Any]:
        return formatted.slack


class DiscordWebhookAdapter(_WebhookAdapter):
    config_type = DiscordWebhookChannel

    def _body(self, formatted: FormattedMessage) -> Dict[str, Any]:
        return formatted.discord


class TeamsWebhookAdapter(_WebhookAdapter):
    config_type = TeamsWebhookChannel

    def _body(self, formatted: FormattedMessage) -> Dict[str, Any]:
        return formatted.teams


class TelegramBotAdapter(ChannelAdapter):
    config_type = TelegramBotChannel

    async def send(self, payload: NotificationPayload, formatted: FormattedMessage) -> DeliveryResult:
        config: TelegramBotChannel = self._config
        return await send_telegram_message(
            config.bot_token,
            config.chat_id,
            formatted.telegram,
            parse_mode="MarkdownV2",
            **self._retry_kwargs(),
        )


_ADAPTERS: Dict[type, Type[ChannelAdapter]] = {
    EmailChannel: EmailAdapter,
    SlackWebhookChannel: SlackWebhookAdapter,
    DiscordWebhookChannel: DiscordWebhookAdapter,
    TeamsWebhookChannel: TeamsWebhookAdapter,
    TelegramBotChannel: TelegramBotAdapter,
}


def build_adapter(channel: ChannelConfig, **kwargs: Any) -> ChannelAdapter:
    adapter_cls = _ADAPTERS.get(type(channel))
    if adapter_cls is None:
        raise ConfigurationError(f"Unsupported channel configuration: {type(channel).__name__}")
    return adapter_cls(channel, **kwargs)


def build_adapters(
    channels: Iterable[ChannelConfig],
    *,
    timeout: Optional[float] = None,
    **kwargs: Any,
) -> List[ChannelAdapter]:
    """Instantiate one adapter per configured channel, in configuration order.

    ``timeout`` is the whole delivery budget for one channel; each request
    attempt gets an equal share of it.
    """

    if timeout is not None:
        attempts = kwargs.get("max_retries", DEFAULT_MAX_RETRIES) + 1
        kwargs["timeout"] = timeout / attempts
    adapters = [build_adapter(channel, **kwargs) for channel in channels]
    logger.debug("Configured notification channels: %s", [adapter.name for adapter in adapters])
    return adapters


__all__ = [
    "ChannelAdapter",
    "DiscordWebhookAdapter",
    "EmailAdapter",
    "SlackWebhookAdapter",
    "TeamsWebhookAdapter",
    "TelegramBotAdapter",
    "build_adapter",
    "build_adapters",
]
