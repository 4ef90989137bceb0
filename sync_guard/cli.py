"""Command line helpers for validating configuration and testing channels."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from sync_guard.config.models import AlertingConfig
from sync_guard.configuration import load_alerting_config
from sync_guard.errors import ConfigurationError
from sync_guard.logging_setup import configure_default_logging


def summarise_config(config: AlertingConfig) -> Dict[str, Any]:
    return {
        "retry": {
            "max_attempts": config.retry.max_attempts,
            "base_delay": config.retry.base_delay,
            "retryable_error_kinds": sorted(kind.value for kind in config.retry.retryable_error_kinds),
        },
        "thresholds": {
            "consecutive_failure_limit": config.thresholds.consecutive_failure_limit,
            "failure_rate_limit": config.thresholds.failure_rate_limit,
            "window_minutes": config.thresholds.window_duration / 60.0,
        },
        "rate_limit": {
            "min_interval_minutes": config.rate_limit.min_interval / 60.0,
            "max_per_period": config.rate_limit.max_per_period,
        },
        "channels": [
            {"name": channel.name, "type": type(channel).__name__} for channel in config.channels
        ],
        "outcome_log_path": str(config.outcome_log_path) if config.outcome_log_path else None,
    }


async def _send_test_notification(config: AlertingConfig, source: str) -> int:
    from sync_guard.engine.core import AlertingEngine
    from sync_guard.notifications.payload import build_test_payload

    engine = AlertingEngine(config)
    if not engine.adapters:
        print("No notification channels are enabled.")
        return 1
    results = await engine.send_direct(build_test_payload(source))
    print(json.dumps({name: result.as_dict() for name, result in results.items()}, indent=2))
    return 0 if all(result.success for result in results.values()) else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Sync resilience and alerting utilities")
    parser.add_argument(
        "--debug",
        type=int,
        default=None,
        help="Logging verbosity: 0 warnings only, 1 info, 2 debug. Defaults to the config's level.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate-config", help="Parse a configuration file and print a summary.")
    validate.add_argument("config", type=Path, help="Path to the JSON configuration file.")

    test = subparsers.add_parser("test-notification", help="Send a test alert to every enabled channel.")
    test.add_argument("config", type=Path, help="Path to the JSON configuration file.")
    test.add_argument("--source", default="sync-guard", help="Source name shown in the test alert.")

    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.debug is not None and args.debug < 0:
        parser.error("--debug must be >= 0")

    try:
        config = load_alerting_config(args.config)
    except ConfigurationError as exc:
        parser.error(str(exc))

    configure_default_logging(config.debug_level if args.debug is None else args.debug)

    if args.command == "validate-config":
        print(json.dumps(summarise_config(config), indent=2))
        return 0
    return asyncio.run(_send_test_notification(config, args.source))


__all__ = ["main", "summarise_config"]
