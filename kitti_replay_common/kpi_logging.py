"""KPI logging helpers for dataset loading and playback."""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional

logger = logging.getLogger("kitti_replay.kpi")


class KPILogger:
    """Emit structured KPI events for downstream analysis."""

    def __init__(
        self,
        enabled: bool = True,
        extra_fields: Optional[Dict[str, Any]] = None,
        log_path: Optional[str] = None,
        emit_to_logger: bool = True,
    ):
        self.enabled = enabled
        self._extra = extra_fields.copy() if extra_fields else {}
        self._emit_to_logger = emit_to_logger
        self._fh = None
        if log_path:
            self._fh = open(log_path, "w", encoding="utf-8")

    def _emit(self, event: str, **fields: Any) -> None:
        if not self.enabled:
            return
        payload = {"event": event, "ts": time.time()}
        payload.update(self._extra)
        payload.update({k: v for k, v in fields.items() if v is not None})
        if self._emit_to_logger:
            logger.debug("KPI %s", json.dumps(payload, sort_keys=True))
        if self._fh:
            self._fh.write(json.dumps(payload, sort_keys=True) + "\n")
            self._fh.flush()

    def frame_cached(self, index: int, stamp_ns: int, points: int, nbytes: int) -> None:
        self._emit("frame_cached", index=index, stamp_ns=stamp_ns, points=points, bytes=nbytes)

    def frame_skipped(self, index: int, path: str, reason: str) -> None:
        self._emit("frame_skipped", index=index, path=path, reason=reason)

    def cache_built(self, frames: int, skipped: int, duration_s: float, **fields: Any) -> None:
        self._emit("cache_built", frames=frames, skipped=skipped, duration_s=duration_s, **fields)

    def frame_published(self, index: int, stamp_ns: int, next_delay_ns: int, loop: int) -> None:
        self._emit(
            "frame_published",
            index=index,
            stamp_ns=stamp_ns,
            next_delay_ns=next_delay_ns,
            loop=loop,
        )

    def publish_failed(self, index: int, error: str) -> None:
        self._emit("publish_failed", index=index, error=error)

    def close(self) -> None:
        if self._fh:
            try:
                self._fh.close()
            finally:
                self._fh = None
