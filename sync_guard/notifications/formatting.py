"""Render a :class:`NotificationPayload` for every supported channel.

All renderings share :func:`format_value`, so a field carries the same text on
every channel; only the channel-specific escaping differs.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Tuple

from .payload import NotificationPayload, Severity

SUBJECT_PREFIX = "[Sync Guard]"

_SEVERITY_EMOJI = {
    Severity.INFO: "ℹ️",
    Severity.WARNING: "⚠️",
    Severity.ERROR: "\U0001f6a8",
    Severity.CRITICAL: "\U0001f525",
}

# Discord embed colours
_DISCORD_COLOURS = {
    Severity.INFO: 3447003,
    Severity.WARNING: 15844367,
    Severity.ERROR: 15158332,
    Severity.CRITICAL: 15158332,
}

_HTML_COLOURS = {
    Severity.INFO: "#17a2b8",
    Severity.WARNING: "#ffc107",
    Severity.ERROR: "#dc3545",
    Severity.CRITICAL: "#721c24",
}

_TEAMS_COLOURS = {
    Severity.INFO: "3498DB",
    Severity.WARNING: "F1C40F",
    Severity.ERROR: "E74C3C",
    Severity.CRITICAL: "992D22",
}

_TELEGRAM_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")
_DISCORD_SPECIAL = re.compile(r"([\\*_~`|>])")
_SLACK_FIELDS_PER_BLOCK = 10
_DISCORD_INLINE_LIMIT = 40


@dataclass(frozen=True)
class FormattedMessage:
    subject: str
    plain_text: str
    html: str
    slack: Dict[str, Any]
    discord: Dict[str, Any]
    telegram: str
    teams: Dict[str, Any]


def format_duration(value: float | timedelta) -> str:
    seconds = value.total_seconds() if isinstance(value, timedelta) else float(value)
    millis = int(round(seconds * 1000.0))
    if millis < 1000:
        return f"{millis}ms"
    return f"{seconds:.1f}s"


def format_value(value: Any) -> str:
    if value is None:
        return "n/a"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, timedelta):
        return format_duration(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def escape_slack(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def escape_discord(text: str) -> str:
    return _DISCORD_SPECIAL.sub(r"\\\1", text)


def escape_telegram(text: str) -> str:
    return _TELEGRAM_SPECIAL.sub(r"\\\1", text)


class MessageFormatter:
    """Pure renderer producing one :class:`FormattedMessage` per payload."""

    def format(self, payload: NotificationPayload) -> FormattedMessage:
        title = f"{_SEVERITY_EMOJI[payload.severity]} {payload.summary}"
        rows = field_rows(payload.fields)
        return FormattedMessage(
            subject=f"{SUBJECT_PREFIX} {title}",
            plain_text=self._plain_text(title, rows),
            html=self._html(payload, title, rows),
            slack=self._slack(title, rows),
            discord=self._discord(payload, title, rows),
            telegram=self._telegram(title, rows),
            teams=self._teams(payload, title, rows),
        )

    @staticmethod
    def _plain_text(title: str, rows: List[Tuple[str, str]]) -> str:
        lines = [title, ""]
        lines.extend(f"{label}: {value}" for label, value in rows)
        return "\n".join(lines) + "\n"

    @staticmethod
    def _html(payload: NotificationPayload, title: str, rows: List[Tuple[str, str]]) -> str:
        colour = _HTML_COLOURS[payload.severity]
        body = "\n".join(
            '      <div class="field"><span class="label">{label}:</span> '
            '<span class="value">{value}</span></div>'.format(
                label=html.escape(label), value=html.escape(value)
            )
            for label, value in rows
        )
        return (
            "<!DOCTYPE html>\n"
            "<html>\n<head>\n  <style>\n"
            "    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }\n"
            f"    .header {{ background: {colour}; color: white; padding: 15px; }}\n"
            "    .label { font-weight: bold; color: #495057; }\n"
            "  </style>\n</head>\n<body>\n"
            f'  <div class="header"><h2>{html.escape(title)}</h2></div>\n'
            '    <div class="content">\n'
            f"{body}\n"
            "    </div>\n</body>\n</html>\n"
        )

    @staticmethod
    def _slack(title: str, rows: List[Tuple[str, str]]) -> Dict[str, Any]:
        blocks: List[Dict[str, Any]] = [
            {"type": "header", "text": {"type": "plain_text", "text": title}},
        ]
        fields = [
            {"type": "mrkdwn", "text": f"*{escape_slack(label)}:*\n{escape_slack(value)}"}
            for label, value in rows
        ]
        for start in range(0, len(fields), _SLACK_FIELDS_PER_BLOCK):
            blocks.append(
                {"type": "section", "fields": fields[start : start + _SLACK_FIELDS_PER_BLOCK]}
            )
        return {"text": f"*{escape_slack(title)}*", "blocks": blocks}

    @staticmethod
    def _discord(
        payload: NotificationPayload, title: str, rows: List[Tuple[str, str]]
    ) -> Dict[str, Any]:
        fields = [
            {
                "name": escape_discord(label),
                "value": escape_discord(value) or "n/a",
                "inline": len(value) <= _DISCORD_INLINE_LIMIT,
            }
            for label, value in rows
        ]
        return {
            "embeds": [
                {
                    "title": title,
                    "color": _DISCORD_COLOURS[payload.severity],
                    "fields": fields,
                    "timestamp": payload.timestamp.isoformat(),
                }
            ]
        }

    @staticmethod
    def _telegram(title: str, rows: List[Tuple[str, str]]) -> str:
        lines = [f"*{escape_telegram(title)}*", ""]
        lines.extend(
            f"*{escape_telegram(label)}:* {escape_telegram(value)}" for label, value in rows
        )
        return "\n".join(lines)

    @staticmethod
    def _teams(
        payload: NotificationPayload, title: str, rows: List[Tuple[str, str]]
    ) -> Dict[str, Any]:
        return {
            "@type": "MessageCard",
            "@context": "https://schema.org/extensions",
            "themeColor": _TEAMS_COLOURS[payload.severity],
            "summary": title,
            "sections": [
                {
                    "activityTitle": title,
                    "facts": [{"name": label, "value": value} for label, value in rows],
                    "markdown": False,
                }
            ],
        }


def field_rows(fields: Mapping[str, Any]) -> List[Tuple[str, str]]:
    """Return ``(label, rendered value)`` pairs in payload order."""

    return [(label, format_value(value)) for label, value in fields.items()]


__all__ = [
    "FormattedMessage",
    "MessageFormatter",
    "escape_discord",
    "escape_slack",
    "escape_telegram",
    "field_rows",
    "format_duration",
    "format_value",
]
