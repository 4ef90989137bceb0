"""Lightweight metrics registry for sync and alerting activity."""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, MutableMapping, Tuple

LabelKey = Tuple[str, Tuple[Tuple[str, str], ...]]


@dataclass
class HistogramSummary:
    count: int = 0
    total: float = 0.0
    maximum: float = 0.0

    def add(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.maximum = value if self.count == 1 else max(self.maximum, value)


@dataclass
class MetricRegistry:
    """A minimal Prometheus-style collector used for in-process accounting.

    Histograms keep running aggregates rather than samples, so memory stays
    constant for a long-running process. All access goes through one lock.
    """

    counters: MutableMapping[LabelKey, float] = field(default_factory=lambda: defaultdict(float))
    histograms: MutableMapping[LabelKey, HistogramSummary] = field(
        default_factory=lambda: defaultdict(HistogramSummary)
    )
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def inc(self, name: str, *, labels: Mapping[str, str] | None = None, amount: float = 1.0) -> None:
        key = self._key(name, labels)
        with self._lock:
            self.counters[key] += amount

    def observe(self, name: str, value: float, *, labels: Mapping[str, str] | None = None) -> None:
        key = self._key(name, labels)
        with self._lock:
            self.histograms[key].add(float(value))

    def value(self, name: str, *, labels: Mapping[str, str] | None = None) -> float:
        with self._lock:
            return self.counters.get(self._key(name, labels), 0.0)

    def snapshot(self) -> Dict[str, Any]:
        counters: Dict[str, list] = defaultdict(list)
        histograms: Dict[str, list] = defaultdict(list)
        with self._lock:
            for (name, labels), amount in self.counters.items():
                counters[name].append({"labels": dict(labels), "value": amount})
            for (name, labels), summary in self.histograms.items():
                histograms[name].append(
                    {
                        "labels": dict(labels),
                        "count": summary.count,
                        "sum": summary.total,
                        "max": summary.maximum,
                    }
                )
        return {"counters": dict(counters), "histograms": dict(histograms)}

    def clear(self) -> None:
        with self._lock:
            self.counters.clear()
            self.histograms.clear()

    def _key(self, name: str, labels: Mapping[str, str] | None) -> LabelKey:
        sorted_labels = tuple(sorted((k, str(v)) for k, v in (labels or {}).items()))
        return name, sorted_labels


class Timer:
    """Context manager to record elapsed time into a histogram."""

    def __init__(self, registry: MetricRegistry, name: str, *, labels: Mapping[str, str] | None = None) -> None:
        self._registry = registry
        self._name = name
        self._labels = labels
        self._start: float | None = None
        self.elapsed: float | None = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._start is None:
            return
        self.elapsed = time.perf_counter() - self._start
        self._registry.observe(self._name, self.elapsed, labels=self._labels)
