"""Append-only persistence of recorded sync outcomes."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Sequence

from .models import SyncOutcome

logger = logging.getLogger(__name__)

DEFAULT_REDACT_FIELDS: tuple[str, ...] = (
    "password",
    "secret",
    "token",
    "api_key",
    "apikey",
    "webhook",
)


class OutcomeSink:
    """Protocol-like base class for outcome sinks."""

    def write(self, outcome: SyncOutcome) -> None:  # pragma: no cover - interface method
        raise NotImplementedError


class MemoryOutcomeSink(OutcomeSink):
    """Keep outcomes in memory, mostly useful for tests."""

    def __init__(self) -> None:
        self.outcomes: List[SyncOutcome] = []
        self._lock = threading.Lock()

    def write(self, outcome: SyncOutcome) -> None:
        with self._lock:
            self.outcomes.append(outcome)


class JsonlOutcomeSink(OutcomeSink):
    """Persist outcomes to a JSONL file on disk, one object per line."""

    def __init__(self, path: Path | str, *, redact_fields: Sequence[str] = DEFAULT_REDACT_FIELDS) -> None:
        self._path = Path(path).expanduser()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._redact_keys = {self._normalise_key(field) for field in redact_fields}

    @property
    def path(self) -> Path:
        return self._path

    @staticmethod
    def _normalise_key(key: str) -> str:
        return key.replace(" ", "").replace("-", "_").lower()

    def _redact(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            redacted: Dict[str, Any] = {}
            for key, item in value.items():
                norm_key = self._normalise_key(str(key))
                if any(field in norm_key for field in self._redact_keys):
                    redacted[key] = "<redacted>"
                else:
                    redacted[key] = self._redact(item)
            return redacted
        if isinstance(value, (list, tuple, set)):
            return [self._redact(item) for item in value]
        return value

    def write(self, outcome: SyncOutcome) -> None:
        record = self._redact(dict(outcome.as_dict()))
        record["recorded_at"] = datetime.now(timezone.utc).isoformat()
        payload = json.dumps(record, sort_keys=True, default=str) + "\n"
        with self._lock:
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(payload)


def iter_outcomes(path: Path | str) -> Iterator[Dict[str, Any]]:
    """Yield parsed outcome records from ``path``."""

    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:  # pragma: no cover - corrupted entry
                    logger.warning("Skipping invalid outcome record: %s", line)
    except FileNotFoundError:
        return


def write_safely(sink: OutcomeSink, outcome: SyncOutcome) -> bool:
    """Write ``outcome`` through ``sink``; failures are logged, not raised."""

    try:
        sink.write(outcome)
    except Exception as exc:
        logger.warning(
            "Failed to persist outcome via %s: %s",
            type(sink).__name__,
            exc,
            extra={"source": outcome.source_id},
        )
        return False
    return True


__all__ = [
    "DEFAULT_REDACT_FIELDS",
    "JsonlOutcomeSink",
    "MemoryOutcomeSink",
    "OutcomeSink",
    "iter_outcomes",
    "write_safely",
]
