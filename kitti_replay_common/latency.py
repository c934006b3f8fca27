"""Tick timing for playback: how late each frame went out versus its schedule."""
from __future__ import annotations

import json
import statistics
from collections import deque
from typing import Dict, Iterable, List, Optional


def _percentile(values: List[float], pct: float) -> Optional[float]:
    if not values:
        return None
    if pct <= 0:
        return values[0]
    if pct >= 100:
        return values[-1]
    rank = (pct / 100.0) * (len(values) - 1)
    lower = int(rank)
    upper = min(lower + 1, len(values) - 1)
    weight = rank - lower
    return values[lower] * (1 - weight) + values[upper] * weight


def _stats(values: Iterable[float]) -> Dict[str, Optional[float]]:
    vals = sorted(values)
    if not vals:
        return {"count": 0}
    out: Dict[str, Optional[float]] = {
        "count": len(vals),
        "min": vals[0],
        "max": vals[-1],
        "mean": statistics.mean(vals),
        "median": statistics.median(vals),
        "p90": _percentile(vals, 90.0),
        "p95": _percentile(vals, 95.0),
        "p99": _percentile(vals, 99.0),
    }
    if len(vals) > 1:
        out["stdev"] = statistics.pstdev(vals)
    return out


class TickTimingTracker:
    """Record requested vs observed interval for every playback tick."""

    def __init__(self, max_events: int = 100_000):
        self._events: deque = deque(maxlen=max(1, int(max_events)))
        self._dropped = 0

    def record_tick(self, index: int, requested_ns: int, observed_ns: int) -> None:
        if len(self._events) == self._events.maxlen:
            # Keep the newest window; playback loops forever.
            self._dropped += 1
        self._events.append({
            "index": index,
            "requested_ms": requested_ns / 1e6,
            "observed_ms": observed_ns / 1e6,
            "lateness_ms": (observed_ns - requested_ns) / 1e6,
        })

    def summary(self) -> Dict[str, object]:
        return {
            "ticks": len(self._events) + self._dropped,
            "requested_ms": _stats(ev["requested_ms"] for ev in self._events),
            "observed_ms": _stats(ev["observed_ms"] for ev in self._events),
            "lateness_ms": _stats(ev["lateness_ms"] for ev in self._events),
        }

    def export_json(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"events": list(self._events), "summary": self.summary()}, f, indent=2)

    def log_summary(self, logger) -> None:
        lateness = self.summary()["lateness_ms"]
        if not lateness.get("count"):
            logger.info("Tick timing: no ticks recorded")
            return
        logger.info(
            "Tick timing: %d ticks | lateness mean=%.3fms p95=%.3fms max=%.3fms",
            lateness["count"],
            lateness["mean"],
            lateness["p95"],
            lateness["max"],
        )

    @property
    def events(self) -> List[Dict]:
        return list(self._events)
