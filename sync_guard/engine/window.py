"""Time-bounded outcome window shared by the threshold and health trackers."""

from __future__ import annotations

import bisect
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterator, Tuple


@dataclass(frozen=True)
class WindowEntry:
    timestamp: float
    success: bool


class SlidingWindow:
    """Ordered outcomes pruned by age and capped by count (oldest evicted first)."""

    def __init__(self, duration: float, max_samples: int) -> None:
        self.duration = float(duration)
        self.max_samples = int(max_samples)
        self._entries: Deque[WindowEntry] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[WindowEntry]:
        return iter(self._entries)

    def append(self, timestamp: float, success: bool) -> None:
        entry = WindowEntry(timestamp, success)
        if not self._entries or timestamp >= self._entries[-1].timestamp:
            self._entries.append(entry)
        else:
            # entries stay ordered by timestamp
            position = bisect.bisect_right(self._entries, timestamp, key=lambda item: item.timestamp)
            self._entries.insert(position, entry)
        self.prune(self._entries[-1].timestamp)

    def prune(self, now: float) -> None:
        cutoff = now - self.duration
        while self._entries and self._entries[0].timestamp < cutoff:
            self._entries.popleft()
        while len(self._entries) > self.max_samples:
            self._entries.popleft()

    def counts(self) -> Tuple[int, int]:
        """Return ``(failures, total)``."""

        failures = sum(1 for entry in self._entries if not entry.success)
        return failures, len(self._entries)

    def failure_rate(self) -> float:
        failures, total = self.counts()
        if total == 0:
            return 0.0
        return failures / total

    def success_rate(self) -> float:
        failures, total = self.counts()
        if total == 0:
            return 0.0
        return (total - failures) / total

    def clear(self) -> None:
        self._entries.clear()
