"""Logging configuration with secret redaction.

Channel credentials travel through log records in several shapes: webhook
URLs, Telegram ``bot<token>`` path segments, and ``password=``/``token:``
pairs inside reprs. Redaction happens when the record is created, so every
handler sees the masked text, including handlers attached after
:func:`configure_logging` ran.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any, Callable, Optional, TextIO

REDACTED = "***REDACTED***"

_KEY_VALUE = re.compile(
    r"""(?ix)
    (['"]?(?<![A-Za-z0-9])(?:password|passwd|bot_token|token|api[_-]?key|secret|authorization)['"]?
    \s*[:=]\s*['"]?)
    ([^'",\s&}]+)
    """
)
_TELEGRAM_BOT = re.compile(r"(/bot)\d+:[A-Za-z0-9_-]+")
_WEBHOOK_URLS = (
    re.compile(r"(https://hooks\.slack\.com/services/)[^\s'\"]+"),
    re.compile(r"(https://(?:ptb\.|canary\.)?discord(?:app)?\.com/api/webhooks/)[^\s'\"]+"),
    re.compile(r"(https://[\w.-]*\.webhook\.office\.com/)[^\s'\"]+"),
    re.compile(r"(https://[\w.-]*\.logic\.azure\.com(?::\d+)?/)[^\s'\"]+"),
)

_DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_HANDLER_MARKER = "_sync_guard_handler"
_FACTORY_MARKER = "_sync_guard_redacting"


def redact_text(text: str) -> str:
    """Mask credentials embedded in ``text``."""

    text = _TELEGRAM_BOT.sub(r"\1" + REDACTED, text)
    for pattern in _WEBHOOK_URLS:
        text = pattern.sub(r"\1" + REDACTED, text)
    return _KEY_VALUE.sub(lambda match: match.group(1) + REDACTED, text)


def _redact_record(record: logging.LogRecord) -> None:
    try:
        message = record.getMessage()
    except Exception:  # pragma: no cover - malformed format args are left for logging to report
        return
    redacted = redact_text(message)
    if redacted != message or record.args:
        record.msg = redacted
        record.args = None


class RedactingFilter(logging.Filter):
    """Filter that masks secrets in the rendered message of each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        _redact_record(record)
        return True


def _install_record_factory() -> None:
    current = logging.getLogRecordFactory()
    if getattr(current, _FACTORY_MARKER, False):
        return

    def factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
        record = current(*args, **kwargs)
        _redact_record(record)
        return record

    setattr(factory, _FACTORY_MARKER, True)
    logging.setLogRecordFactory(factory)


def debug_to_logging_level(debug_level: int) -> int:
    """Map a debug verbosity integer to a logging level."""

    if debug_level <= 0:
        return logging.WARNING
    if debug_level == 1:
        return logging.INFO
    return logging.DEBUG


def ensure_logger_level(logger: logging.Logger, level: int) -> None:
    """Ensure ``logger`` and its handlers are set to at most ``level``."""

    if logger.level in {logging.NOTSET} or logger.level > level:
        logger.setLevel(level)
    for handler in logger.handlers:
        if handler.level in {logging.NOTSET} or handler.level > level:
            handler.setLevel(level)


def configure_logging(
    debug: int = 1,
    *,
    stream_target: Optional[TextIO] = None,
    fmt: str = _DEFAULT_FORMAT,
) -> logging.Handler:
    """Install a redacting stream handler on the root logger.

    Calling this again replaces the handler installed by the previous call.
    """

    _install_record_factory()
    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, _HANDLER_MARKER, False):
            root.removeHandler(existing)

    handler = logging.StreamHandler(stream_target or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    handler.addFilter(RedactingFilter())
    setattr(handler, _HANDLER_MARKER, True)
    root.addHandler(handler)
    root.setLevel(debug_to_logging_level(debug))
    return handler


def configure_default_logging(
    debug_level: int = 1,
    *,
    configurator: Callable[..., Any] = configure_logging,
) -> bool:
    """Provision logging unless the host application already did.

    Returns ``True`` when handlers were installed by this call.
    """

    root_logger = logging.getLogger()
    already_configured = bool(root_logger.handlers)
    if not already_configured:
        configurator(debug=debug_level)
    else:
        _install_record_factory()

    desired_level = debug_to_logging_level(debug_level)
    ensure_logger_level(root_logger, desired_level)
    ensure_logger_level(logging.getLogger("sync_guard"), desired_level)
    return not already_configured


__all__ = [
    "REDACTED",
    "RedactingFilter",
    "configure_default_logging",
    "configure_logging",
    "debug_to_logging_level",
    "ensure_logger_level",
    "redact_text",
]
