import json

import pytest

from sync_guard.config.models import (
    DiscordWebhookChannel,
    EmailChannel,
    SlackWebhookChannel,
    TeamsWebhookChannel,
    TelegramBotChannel,
)
from sync_guard.configuration import (
    ENV_BASE_DELAY_SECONDS,
    ENV_MAX_RETRIES,
    ENV_TELEGRAM_CHAT_ID,
    ENV_TELEGRAM_TOKEN,
    load_alerting_config,
    parse_alerting_config,
)
from sync_guard.errors import ConfigurationError, ErrorKind


def _full_payload():
    return {
        "sync": {
            "maxRetries": 4,
            "baseRetryDelayMs": 2000,
            "jitterMs": 250,
            "retryableErrors": ["connection_refused", "TIMEOUT"],
        },
        "notifications": {
            "thresholds": {"consecutiveFailures": 2, "failureRate": 0.25, "ratePeriodMinutes": 30},
            "rateLimit": {"minIntervalMinutes": 5, "maxPerHour": 6},
            "dispatchTimeoutSeconds": 3,
            "email": {
                "enabled": True,
                "host": "smtp.example.com",
                "secure": True,
                "auth": {"user": "alerts@example.com", "pass": "hunter2"},
                "to": "ops@example.com, dev@example.com",
            },
            "telegram": {"enabled": True, "botToken": "123:abc", "chatIds": ["-100", "-200"]},
            "webhooks": {
                "slack": [
                    {"url": "https://hooks.slack.com/services/T/B/X"},
                    {"url": "https://hooks.slack.com/services/T/B/Y", "enabled": False},
                ],
                "discord": {"url": "https://discord.com/api/webhooks/1/abc", "name": "ops-discord"},
                "teams": [{"url": "https://example.webhook.office.com/webhookb2/abc"}],
                "telegram": [{"botToken": "456:def", "chatId": "42", "name": "oncall"}],
            },
        },
        "health": {"healthyThreshold": 0.8, "degradedThreshold": 0.2, "windowHours": 6},
        "logging": {"level": "debug"},
    }


def test_defaults_when_sections_are_missing():
    config = parse_alerting_config({}, env={})

    assert config.retry.max_attempts == 5
    assert config.retry.base_delay == 3.0
    assert config.thresholds.consecutive_failure_limit == 3
    assert config.thresholds.failure_rate_limit == 0.5
    assert config.thresholds.window_duration == 3600.0
    assert config.rate_limit.min_interval == 900.0
    assert config.rate_limit.max_per_period == 4
    assert config.health.healthy_threshold == 0.5
    assert config.health.degraded_threshold == 0.01
    assert config.channels == []
    assert config.dispatch_timeout == 10.0
    assert config.outcome_log_path is None
    assert config.debug_level == 1


def test_full_configuration_is_normalised():
    config = parse_alerting_config(_full_payload(), env={})

    assert config.retry.max_attempts == 4
    assert config.retry.base_delay == 2.0
    assert config.retry.jitter_max == 0.25
    assert config.retry.retryable_error_kinds == frozenset({ErrorKind.CONNECTION_REFUSED, ErrorKind.TIMEOUT})
    assert config.thresholds.consecutive_failure_limit == 2
    assert config.thresholds.failure_rate_limit == 0.25
    assert config.thresholds.window_duration == 1800.0
    assert config.rate_limit.min_interval == 300.0
    assert config.rate_limit.max_per_period == 6
    assert config.health.window_duration == 6 * 3600.0
    assert config.dispatch_timeout == 3.0
    assert config.debug_level == 2

    kinds = [type(channel) for channel in config.channels]
    assert kinds == [
        EmailChannel,
        SlackWebhookChannel,
        DiscordWebhookChannel,
        TeamsWebhookChannel,
        TelegramBotChannel,
        TelegramBotChannel,
    ]
    email = config.channels[0]
    assert email.port == 465
    assert email.use_ssl is True
    assert email.use_tls is False
    assert email.sender == "alerts@example.com"
    assert email.recipients == ("ops@example.com", "dev@example.com")
    assert config.channels[2].name == "ops-discord"
    assert config.channels[4].chat_id == "-100"
    assert config.channels[5].name == "oncall"


def test_disabled_channels_are_skipped():
    payload = {
        "notifications": {
            "email": {"enabled": False, "host": "smtp.example.com"},
            "telegram": {"botToken": "123:abc", "chatId": "1"},
            "webhooks": {"slack": [{"url": "https://hooks.slack.com/services/T/B/X", "enabled": "off"}]},
        }
    }

    assert parse_alerting_config(payload, env={}).channels == []


def test_environment_overrides():
    env = {
        ENV_MAX_RETRIES: "2",
        ENV_BASE_DELAY_SECONDS: "1.5",
        ENV_TELEGRAM_TOKEN: "789:xyz",
        ENV_TELEGRAM_CHAT_ID: "555",
    }

    config = parse_alerting_config({"sync": {"maxRetries": 8}}, env=env)

    assert config.retry.max_attempts == 2
    assert config.retry.base_delay == 1.5
    assert len(config.channels) == 1
    assert config.channels[0].bot_token == "789:xyz"
    assert config.channels[0].chat_id == "555"


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"sync": {"maxRetries": 11}}, "maxRetries"),
        ({"sync": {"maxRetries": -1}}, "maxRetries"),
        ({"sync": {"baseRetryDelayMs": 500}}, "baseRetryDelayMs"),
        ({"sync": {"maxRetries": "many"}}, "number"),
        ({"sync": {"retryableErrors": ["gremlins"]}}, "retryableErrors"),
        ({"notifications": {"thresholds": {"failureRate": 1.5}}}, "failure_rate_limit"),
        ({"notifications": {"webhooks": {"slack": [{"url": "not-a-url"}]}}}, "Slack"),
        ({"notifications": {"email": {"enabled": True, "host": "smtp.example.com"}}}, "sender"),
        ({"notifications": {"dispatchTimeoutSeconds": 0}}, "dispatchTimeoutSeconds"),
        ({"logging": {"level": "LOUD"}}, "logging level"),
        ({"notifications": []}, "'notifications'"),
    ],
)
def test_invalid_values_raise_configuration_error(payload, message):
    with pytest.raises(ConfigurationError) as excinfo:
        parse_alerting_config(payload, env={})

    assert message in str(excinfo.value)


def test_load_from_file_resolves_outcome_log(tmp_path):
    config_dir = tmp_path / "conf"
    config_dir.mkdir()
    path = config_dir / "alerting.json"
    path.write_text(json.dumps({"outcomeLog": "logs/outcomes.jsonl"}), encoding="utf-8")

    config = load_alerting_config(path, env={})

    assert config.outcome_log_path == (config_dir / "logs" / "outcomes.jsonl").resolve()


def test_load_reports_missing_and_malformed_files(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_alerting_config(tmp_path / "missing.json", env={})

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Invalid JSON"):
        load_alerting_config(broken, env={})
