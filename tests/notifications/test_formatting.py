import html
import re
from datetime import datetime, timedelta, timezone

import pytest

from sync_guard.notifications.formatting import (
    MessageFormatter,
    escape_discord,
    escape_slack,
    escape_telegram,
    format_duration,
    format_value,
)
from sync_guard.notifications.payload import NotificationPayload, Severity

_HTML_FIELD = re.compile(r'<span class="label">(.*?):</span> <span class="value">(.*?)</span>')


def _payload():
    return NotificationPayload(
        source_id="Main",
        severity=Severity.ERROR,
        summary="Sync Error: Main",
        fields={
            "Server": "Main",
            "Time": datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc),
            "Error": "connect <ECONNREFUSED> 127.0.0.1:5006 & retry_later",
            "Duration": timedelta(seconds=4.2),
            "Consecutive Failures": 3,
            "Failure Rate": "66.7%",
        },
        timestamp=datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc),
        correlation_id="cid-1",
    )


def _plain_fields(text):
    fields = {}
    for line in text.splitlines()[2:]:
        if ": " in line:
            label, value = line.split(": ", 1)
            fields[label] = value
    return fields


def test_plain_text_and_html_carry_the_same_fields():
    formatted = MessageFormatter().format(_payload())

    plain = _plain_fields(formatted.plain_text)
    rich = {html.unescape(label): html.unescape(value) for label, value in _HTML_FIELD.findall(formatted.html)}

    assert plain == rich
    assert plain["Server"] == "Main"
    assert plain["Duration"] == "4.2s"
    assert plain["Time"] == "2024-03-01 12:30:00 UTC"
    assert plain["Failure Rate"] == "66.7%"
    assert "&lt;ECONNREFUSED&gt;" in formatted.html


def test_every_channel_lists_fields_in_order():
    formatted = MessageFormatter().format(_payload())
    labels = list(_payload().fields)

    slack_labels = [field["text"].split(":*")[0].lstrip("*") for field in formatted.slack["blocks"][1]["fields"]]
    discord_labels = [field["name"] for field in formatted.discord["embeds"][0]["fields"]]
    teams_labels = [fact["name"] for fact in formatted.teams["sections"][0]["facts"]]

    assert slack_labels == labels
    assert discord_labels == labels
    assert teams_labels == labels
    assert formatted.subject.startswith("[Sync Guard]")
    assert formatted.subject.endswith("Sync Error: Main")


def test_channel_escaping_is_scoped_to_its_channel():
    formatted = MessageFormatter().format(_payload())

    slack_error = formatted.slack["blocks"][1]["fields"][2]["text"]
    assert "&lt;ECONNREFUSED&gt;" in slack_error
    assert "&amp; retry_later" in slack_error

    discord_error = formatted.discord["embeds"][0]["fields"][2]["value"]
    assert "retry\\_later" in discord_error

    assert "*Failure Rate:* 66\\.7%" in formatted.telegram
    assert "127\\.0\\.0\\.1:5006" in formatted.telegram

    teams_error = formatted.teams["sections"][0]["facts"][2]["value"]
    assert formatted.teams["sections"][0]["markdown"] is False
    assert teams_error == "connect <ECONNREFUSED> 127.0.0.1:5006 & retry_later"
    assert "connect <ECONNREFUSED> 127.0.0.1:5006 & retry_later" in formatted.plain_text


def test_severity_selects_colour():
    formatter = MessageFormatter()
    error = formatter.format(_payload())
    info = formatter.format(
        NotificationPayload(source_id="Main", severity=Severity.INFO, summary="Test Notification")
    )

    assert error.discord["embeds"][0]["color"] == 15158332
    assert info.discord["embeds"][0]["color"] == 3447003
    assert error.teams["themeColor"] != info.teams["themeColor"]


def test_slack_fields_are_split_into_blocks_of_ten():
    payload = NotificationPayload(
        source_id="Main",
        severity=Severity.WARNING,
        summary="Many fields",
        fields={f"Field {index}": index for index in range(12)},
    )

    blocks = MessageFormatter().format(payload).slack["blocks"]

    assert [len(block["fields"]) for block in blocks[1:]] == [10, 2]


@pytest.mark.parametrize(
    "value, expected",
    [
        (0.34, "340ms"),
        (timedelta(milliseconds=999), "999ms"),
        (0.9996, "1.0s"),
        (0.9994, "999ms"),
        (1.0, "1.0s"),
        (4.2, "4.2s"),
        (timedelta(seconds=75), "75.0s"),
    ],
)
def test_format_duration(value, expected):
    assert format_duration(value) == expected


def test_format_value():
    assert format_value(None) == "n/a"
    assert format_value(True) == "yes"
    assert format_value(3) == "3"
    assert format_value(0.5) == "0.5"
    assert format_value(timedelta(seconds=0.12)) == "120ms"
    assert format_value(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02 03:04:05 UTC"


def test_escape_helpers():
    assert escape_slack("a<b>&c") == "a&lt;b&gt;&amp;c"
    assert escape_discord("a_b*c") == "a\\_b\\*c"
    assert escape_telegram("v1.2 (beta)!") == "v1\\.2 \\(beta\\)\\!"
