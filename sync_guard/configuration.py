"""Utilities for loading alerting configuration files."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

from sync_guard.config.models import (
    AlertingConfig,
    ChannelConfig,
    DiscordWebhookChannel,
    EmailChannel,
    HealthConfig,
    RateLimitConfig,
    RetryPolicy,
    SlackWebhookChannel,
    TeamsWebhookChannel,
    TelegramBotChannel,
    ThresholdConfig,
)
from sync_guard.errors import ConfigurationError, ErrorKind

logger = logging.getLogger(__name__)

ENV_MAX_RETRIES = "SYNC_GUARD_MAX_RETRIES"
ENV_BASE_DELAY_SECONDS = "SYNC_GUARD_BASE_DELAY_SECONDS"
ENV_TELEGRAM_TOKEN = "SYNC_GUARD_TELEGRAM_TOKEN"
ENV_TELEGRAM_CHAT_ID = "SYNC_GUARD_TELEGRAM_CHAT_ID"

MAX_RETRIES_LIMIT = 10
MIN_BASE_DELAY_MS = 1000

_LOG_LEVELS = {"ERROR": 0, "WARN": 0, "WARNING": 0, "INFO": 1, "DEBUG": 2}


def _load_json(path: Path) -> Dict[str, Any]:
    """Return parsed JSON payload from ``path`` with helpful error messages."""

    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Configuration file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in configuration file {path}: {exc}") from exc


def _ensure_mapping(payload: Any, *, description: str) -> MutableMapping[str, Any]:
    """Return ``payload`` when it is a mapping, otherwise raise ``ConfigurationError``."""

    if payload is None:
        return {}
    if isinstance(payload, MutableMapping):
        return payload
    if isinstance(payload, Mapping):
        return dict(payload)
    raise ConfigurationError(f"{description} must be a JSON object, not {type(payload).__name__}.")


def _ensure_list(payload: Any, *, description: str) -> List[Any]:
    if payload is None:
        return []
    if isinstance(payload, Mapping):
        return [payload]
    if isinstance(payload, (str, bytes)) or not isinstance(payload, (list, tuple)):
        raise ConfigurationError(f"{description} must be an array of objects.")
    return list(payload)


def _coerce_bool(value: Any, default: bool = False) -> bool:
    """Return a boolean for ``value`` supporting common string representations."""

    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"", "default", "auto"}:
            return default
        if lowered in {"1", "true", "yes", "on", "enabled", "enable"}:
            return True
        if lowered in {"0", "false", "no", "off", "disabled", "disable"}:
            return False
    return bool(value)


def _number(settings: Mapping[str, Any], key: str, default: float, *, description: str) -> float:
    raw = settings.get(key, default)
    if isinstance(raw, bool):
        raise ConfigurationError(f"{description} '{key}' must be a number.")
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{description} '{key}' must be a number, got {raw!r}.") from exc


def _integer(settings: Mapping[str, Any], key: str, default: int, *, description: str) -> int:
    value = _number(settings, key, default, description=description)
    if value != int(value):
        raise ConfigurationError(f"{description} '{key}' must be an integer, got {value!r}.")
    return int(value)


def _is_enabled(settings: Mapping[str, Any], *, default: bool = True) -> bool:
    return _coerce_bool(settings.get("enabled"), default)


def _parse_retry(settings: Any, env: Mapping[str, str]) -> RetryPolicy:
    sync = _ensure_mapping(settings, description="'sync'")
    max_retries = _integer(sync, "maxRetries", 5, description="'sync'")
    base_delay_ms = _number(sync, "baseRetryDelayMs", 3000, description="'sync'")
    jitter_ms = _number(sync, "jitterMs", 0, description="'sync'")

    if env.get(ENV_MAX_RETRIES):
        max_retries = _integer(env, ENV_MAX_RETRIES, max_retries, description="Environment")
    if env.get(ENV_BASE_DELAY_SECONDS):
        base_delay_ms = _number(env, ENV_BASE_DELAY_SECONDS, 0, description="Environment") * 1000

    if not 0 <= max_retries <= MAX_RETRIES_LIMIT:
        raise ConfigurationError(
            f"Invalid maxRetries value: {max_retries}\nMust be between 0 and {MAX_RETRIES_LIMIT}."
        )
    if base_delay_ms < MIN_BASE_DELAY_MS:
        raise ConfigurationError(
            f"Invalid baseRetryDelayMs value: {base_delay_ms:g}\n"
            f"Must be at least {MIN_BASE_DELAY_MS}ms (1 second)."
        )

    kwargs: Dict[str, Any] = {
        "max_attempts": max_retries,
        "base_delay": base_delay_ms / 1000.0,
        "jitter_max": jitter_ms / 1000.0,
    }
    kinds = sync.get("retryableErrors")
    if kinds is not None:
        try:
            kwargs["retryable_error_kinds"] = frozenset(ErrorKind.parse(kind) for kind in kinds)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid 'sync.retryableErrors': {exc}") from exc
    return RetryPolicy(**kwargs)


def _parse_thresholds(settings: Any) -> ThresholdConfig:
    data = _ensure_mapping(settings, description="'notifications.thresholds'")
    description = "'notifications.thresholds'"
    return ThresholdConfig(
        consecutive_failure_limit=_integer(data, "consecutiveFailures", 3, description=description),
        failure_rate_limit=_number(data, "failureRate", 0.5, description=description),
        window_duration=_number(data, "ratePeriodMinutes", 60, description=description) * 60.0,
        window_max_samples=_integer(data, "maxSamples", 100, description=description),
    )


def _parse_rate_limit(settings: Any) -> RateLimitConfig:
    data = _ensure_mapping(settings, description="'notifications.rateLimit'")
    description = "'notifications.rateLimit'"
    return RateLimitConfig(
        min_interval=_number(data, "minIntervalMinutes", 15, description=description) * 60.0,
        max_per_period=_integer(data, "maxPerHour", 4, description=description),
        period_duration=3600.0,
    )


def _parse_health(settings: Any) -> HealthConfig:
    data = _ensure_mapping(settings, description="'health'")
    description = "'health'"
    return HealthConfig(
        healthy_threshold=_number(data, "healthyThreshold", 0.5, description=description),
        degraded_threshold=_number(data, "degradedThreshold", 0.01, description=description),
        window_duration=_number(data, "windowHours", 24, description=description) * 3600.0,
        window_max_samples=_integer(data, "maxSamples", 50, description=description),
    )


def _parse_email(settings: Any) -> Optional[EmailChannel]:
    """Return SMTP settings when email notifications are enabled."""

    data = _ensure_mapping(settings, description="'notifications.email'")
    if not data or not _is_enabled(data, default=False):
        return None
    auth = _ensure_mapping(data.get("auth"), description="'notifications.email.auth'")
    recipients = data.get("to") or []
    if isinstance(recipients, str):
        recipients = [part for part in recipients.split(",")]
    secure = _coerce_bool(data.get("secure"), False)
    username = auth.get("user")
    password = auth.get("pass")
    return EmailChannel(
        host=str(data.get("host") or ""),
        sender=str(data.get("from") or username or ""),
        recipients=tuple(str(item) for item in recipients),
        port=_integer(data, "port", 465 if secure else 587, description="'notifications.email'"),
        username=str(username).strip() if username not in (None, "") else None,
        password=str(password) if password not in (None, "") else None,
        use_tls=_coerce_bool(data.get("useTls"), not secure),
        use_ssl=secure,
        name=str(data.get("name") or "email"),
    )


def _parse_webhooks(
    entries: Any, channel_cls: type, default_name: str, description: str
) -> List[ChannelConfig]:
    channels: List[ChannelConfig] = []
    for index, raw in enumerate(_ensure_list(entries, description=description), start=1):
        entry = _ensure_mapping(raw, description=f"{description}[{index}]")
        if not _is_enabled(entry):
            continue
        name = str(entry.get("name") or default_name)
        channels.append(channel_cls(url=str(entry.get("url") or ""), name=name))
    return channels


def _parse_telegram_bot(entry: Mapping[str, Any], default_name: str) -> TelegramBotChannel:
    chat_id = entry.get("chatId")
    if not chat_id:
        chat_ids = entry.get("chatIds") or []
        chat_id = chat_ids[0] if chat_ids else ""
    return TelegramBotChannel(
        bot_token=str(entry.get("botToken") or ""),
        chat_id=str(chat_id),
        name=str(entry.get("name") or default_name),
    )


def _parse_telegram(
    primary: Any, extra_bots: Any, env: Mapping[str, str]
) -> List[TelegramBotChannel]:
    bots: List[TelegramBotChannel] = []
    data = dict(_ensure_mapping(primary, description="'notifications.telegram'"))
    if env.get(ENV_TELEGRAM_TOKEN):
        data["botToken"] = env[ENV_TELEGRAM_TOKEN]
        data.setdefault("enabled", True)
    if env.get(ENV_TELEGRAM_CHAT_ID):
        data["chatId"] = env[ENV_TELEGRAM_CHAT_ID]
    if data and _is_enabled(data, default=False):
        bots.append(_parse_telegram_bot(data, "telegram"))
    description = "'notifications.webhooks.telegram'"
    for index, raw in enumerate(_ensure_list(extra_bots, description=description), start=1):
        entry = _ensure_mapping(raw, description=f"{description}[{index}]")
        if not _is_enabled(entry):
            continue
        bots.append(_parse_telegram_bot(entry, "telegram"))
    return bots


def _resolve_path_relative_to(base: Path, candidate: Any) -> Path:
    """Return an absolute path for ``candidate`` relative to ``base`` when required."""

    path = Path(str(candidate)).expanduser()
    if not path.is_absolute():
        path = (base / path).resolve()
    return path


def _parse_debug_level(settings: Any) -> int:
    data = _ensure_mapping(settings, description="'logging'")
    level = str(data.get("level", "INFO")).strip().upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError(
            f"Invalid logging level {level!r}; expected one of {sorted(_LOG_LEVELS)}."
        )
    return _LOG_LEVELS[level]


def parse_alerting_config(
    payload: Mapping[str, Any],
    *,
    base_dir: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> AlertingConfig:
    """Validate and normalise an alerting configuration mapping."""

    env = os.environ if env is None else env
    base_dir = base_dir or Path.cwd()
    root = _ensure_mapping(payload, description="Alerting configuration")
    notifications = _ensure_mapping(root.get("notifications"), description="'notifications'")
    webhooks = _ensure_mapping(notifications.get("webhooks"), description="'notifications.webhooks'")

    try:
        retry = _parse_retry(root.get("sync"), env)
        thresholds = _parse_thresholds(notifications.get("thresholds"))
        rate_limit = _parse_rate_limit(notifications.get("rateLimit"))
        health = _parse_health(root.get("health"))

        channels: List[ChannelConfig] = []
        email = _parse_email(notifications.get("email"))
        if email is not None:
            channels.append(email)
        channels.extend(
            _parse_webhooks(
                webhooks.get("slack"), SlackWebhookChannel, "slack", "'notifications.webhooks.slack'"
            )
        )
        channels.extend(
            _parse_webhooks(
                webhooks.get("discord"),
                DiscordWebhookChannel,
                "discord",
                "'notifications.webhooks.discord'",
            )
        )
        channels.extend(
            _parse_webhooks(
                webhooks.get("teams"), TeamsWebhookChannel, "teams", "'notifications.webhooks.teams'"
            )
        )
        channels.extend(_parse_telegram(notifications.get("telegram"), webhooks.get("telegram"), env))
    except ConfigurationError:
        raise
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid alerting configuration: {exc}") from exc

    timeout = _number(notifications, "dispatchTimeoutSeconds", 10.0, description="'notifications'")
    if timeout <= 0:
        raise ConfigurationError("'notifications.dispatchTimeoutSeconds' must be positive.")

    outcome_log_path: Optional[Path] = None
    outcome_log = root.get("outcomeLog")
    if outcome_log:
        outcome_log_path = _resolve_path_relative_to(base_dir, outcome_log)

    config = AlertingConfig(
        retry=retry,
        thresholds=thresholds,
        rate_limit=rate_limit,
        health=health,
        channels=channels,
        dispatch_timeout=timeout,
        outcome_log_path=outcome_log_path,
        debug_level=_parse_debug_level(root.get("logging")),
    )
    logger.debug(
        "Parsed alerting configuration",
        extra={"channels": [channel.name for channel in channels], "max_retries": retry.max_attempts},
    )
    return config


def load_alerting_config(
    path: Path | str, *, env: Optional[Mapping[str, str]] = None
) -> AlertingConfig:
    """Load and validate an alerting configuration file from disk."""

    resolved = Path(path).expanduser().resolve()
    payload = _load_json(resolved)
    return parse_alerting_config(
        _ensure_mapping(payload, description="Alerting configuration"),
        base_dir=resolved.parent,
        env=env,
    )


__all__ = [
    "ENV_BASE_DELAY_SECONDS",
    "ENV_MAX_RETRIES",
    "ENV_TELEGRAM_CHAT_ID",
    "ENV_TELEGRAM_TOKEN",
    "load_alerting_config",
    "parse_alerting_config",
]
