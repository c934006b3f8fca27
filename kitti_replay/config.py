"""Replay configuration.

Values come from three layers, later ones winning:
- dataclass defaults
- environment variables (``KITTI_REPLAY_*``)
- explicit overrides (CLI flags), where ``None`` means "not given"

Environment variables:
- KITTI_REPLAY_DATASET: dataset root directory
- KITTI_REPLAY_SENSOR_SUBDIR: sensor directory under the root
- KITTI_REPLAY_TOPIC: output topic
- KITTI_REPLAY_FRAME_ID: header frame id
- KITTI_REPLAY_SYNC_DELAY: seconds between startup and the first timer
- KITTI_REPLAY_FALLBACK_DELAY_MS: delay that closes the loop back to frame 0
"""
from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .loader import DEFAULT_SCRATCH_FLOATS, LoaderConfig

logger = logging.getLogger("kitti_replay.config")

DEFAULT_FALLBACK_DELAY_NS = 100_000_000
DEFAULT_SYNC_DELAY_S = 1.0
ENV_PREFIX = "KITTI_REPLAY_"


def _env_float(name: str) -> Optional[float]:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s%s=%r: not a number", ENV_PREFIX, name, raw)
        return None
    if not math.isfinite(value):
        logger.warning("Ignoring %s%s=%r: not finite", ENV_PREFIX, name, raw)
        return None
    return value


def _env_str(name: str) -> Optional[str]:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


@dataclass
class ReplayConfig:
    dataset_root: Optional[Path] = None
    sensor_subdir: str = "velodyne_points"
    timestamps_name: str = "timestamps_start.txt"
    data_subdir: str = "data"
    extension: str = ".bin"
    topic: str = "pointcloud"
    frame_id: str = "pointcloud"
    sync_delay_s: float = DEFAULT_SYNC_DELAY_S
    fallback_delay_ns: int = DEFAULT_FALLBACK_DELAY_NS
    scratch_floats: int = DEFAULT_SCRATCH_FLOATS

    @classmethod
    def from_env(cls, **overrides: Any) -> "ReplayConfig":
        env: Dict[str, Any] = {}
        dataset = _env_str("DATASET")
        if dataset is not None:
            env["dataset_root"] = dataset
        for key, name in (("sensor_subdir", "SENSOR_SUBDIR"), ("topic", "TOPIC"), ("frame_id", "FRAME_ID")):
            value = _env_str(name)
            if value is not None:
                env[key] = value
        sync = _env_float("SYNC_DELAY")
        if sync is not None:
            env["sync_delay_s"] = sync
        fallback_ms = _env_float("FALLBACK_DELAY_MS")
        if fallback_ms is not None:
            env["fallback_delay_ns"] = int(round(fallback_ms * 1e6))
        return cls().merged(**env).merged(**overrides)

    def merged(self, **overrides: Any) -> "ReplayConfig":
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown config fields: {sorted(unknown)}")
        values = {k: v for k, v in overrides.items() if v is not None}
        if "dataset_root" in values:
            values["dataset_root"] = Path(values["dataset_root"])
        return replace(self, **values)

    def validate(self) -> "ReplayConfig":
        if self.dataset_root is None:
            raise ValueError("No dataset root configured")
        if not self.topic:
            raise ValueError("Topic name must not be empty")
        if not self.frame_id:
            raise ValueError("Frame id must not be empty")
        if self.sync_delay_s < 0.0:
            raise ValueError(f"Sync delay must be >= 0, got {self.sync_delay_s}")
        if self.fallback_delay_ns < 0:
            raise ValueError(f"Fallback delay must be >= 0, got {self.fallback_delay_ns}ns")
        if not self.extension.startswith("."):
            raise ValueError(f"Extension must start with '.', got {self.extension!r}")
        return self

    def loader_config(self) -> LoaderConfig:
        return LoaderConfig(
            sensor_subdir=self.sensor_subdir,
            timestamps_name=self.timestamps_name,
            data_subdir=self.data_subdir,
            extension=self.extension,
            scratch_floats=self.scratch_floats,
        )
