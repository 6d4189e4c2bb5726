# pulse_feed/metrics/collector.py

"""Fire-and-forget in-memory metrics collector."""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("pulse_feed.metrics")

_MAX_EVENT_LENGTH = 64

MetricSink = Callable[[str, dict[str, Any]], None]


@dataclass
class MetricEntry:
    """Running tally for a single event name."""

    count: int
    last_sample_at: str
    sample: dict[str, Any] | None = None


def _sanitize(
    attributes: dict[str, Any] | None,
) -> dict[str, Any] | None:
    """Keep scalar attributes, JSON-encode the rest, drop ``None``."""
    if not attributes:
        return None
    safe: dict[str, Any] = {}
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            safe[key] = value
        else:
            safe[key] = json.dumps(value, default=str)
    return safe


class MetricsCollector:
    """Counts events and keeps the most recent attribute sample.

    ``record`` never raises: a broken forwarding sink or an
    unserialisable attribute is logged and ignored so observability
    can never fail a request.
    """

    def __init__(self, sink: MetricSink | None = None) -> None:
        self._entries: dict[str, MetricEntry] = {}
        self._sink = sink

    def record(
        self,
        event: str,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """Record one occurrence of *event*."""
        try:
            name = event[:_MAX_EVENT_LENGTH]
            now_iso = datetime.now(timezone.utc).isoformat()
            sample = _sanitize(attributes)
            entry = self._entries.get(name)
            if entry is None:
                entry = MetricEntry(count=0, last_sample_at=now_iso)
                self._entries[name] = entry
            entry.count += 1
            entry.last_sample_at = now_iso
            entry.sample = sample
            logger.debug("metric %s %s", name, sample or {})
            if self._sink is not None:
                self._sink(name, dict(sample or {}))
        except Exception as exc:
            logger.warning(
                "Metric '%s' dropped: %s", event, exc, exc_info=True
            )

    def count(self, event: str) -> int:
        """Return how many times *event* was recorded."""
        entry = self._entries.get(event[:_MAX_EVENT_LENGTH])
        return entry.count if entry else 0

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-ready view of every recorded event."""
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "events": [
                {
                    "event": name,
                    "count": entry.count,
                    "last_sample_at": entry.last_sample_at,
                    "sample": entry.sample,
                }
                for name, entry in self._entries.items()
            ],
        }

    def reset(self) -> None:
        """Drop all recorded events."""
        self._entries.clear()
