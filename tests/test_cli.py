import json

import pytest

from sync_guard import cli


def _write_config(tmp_path, payload):
    path = tmp_path / "alerting.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_validate_config_prints_summary(tmp_path, capsys):
    path = _write_config(
        tmp_path,
        {
            "sync": {"maxRetries": 3},
            "notifications": {"webhooks": {"slack": [{"url": "https://hooks.slack.com/services/T/B/X"}]}},
        },
    )

    assert cli.main(["--debug", "0", "validate-config", str(path)]) == 0

    summary = json.loads(capsys.readouterr().out)
    assert summary["retry"]["max_attempts"] == 3
    assert summary["channels"] == [{"name": "slack", "type": "SlackWebhookChannel"}]
    assert summary["rate_limit"]["min_interval_minutes"] == 15.0


def test_invalid_config_exits_with_usage_error(tmp_path, capsys):
    path = _write_config(tmp_path, {"sync": {"maxRetries": 99}})

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["validate-config", str(path)])

    assert excinfo.value.code == 2
    assert "maxRetries" in capsys.readouterr().err


def test_test_notification_without_channels(tmp_path, capsys):
    path = _write_config(tmp_path, {})

    assert cli.main(["--debug", "0", "test-notification", str(path)]) == 1
    assert "No notification channels" in capsys.readouterr().out


def test_test_notification_reports_channel_results(tmp_path, capsys, monkeypatch):
    path = _write_config(
        tmp_path,
        {"notifications": {"webhooks": {"discord": [{"url": "https://discord.com/api/webhooks/1/abc"}]}}},
    )
    sent = []

    async def fake_post_webhook(channel, url, body, **kwargs):
        from services.notifications import DeliveryResult

        sent.append((channel, url, body))
        return DeliveryResult(channel=channel, success=True, attempts=1, response={"status_code": 204})

    monkeypatch.setattr("sync_guard.notifications.adapters.post_webhook", fake_post_webhook)

    assert cli.main(["--debug", "0", "test-notification", str(path), "--source", "Main"]) == 0

    output = json.loads(capsys.readouterr().out)
    assert output["discord"]["success"] is True
    assert sent[0][1] == "https://discord.com/api/webhooks/1/abc"
    assert sent[0][2]["embeds"][0]["title"].endswith("Test Notification")
