from pathlib import Path
from typing import Iterable, List, Optional

import numpy as np
import pytest

from kitti_replay.models import POINT_DTYPE


def make_points(n: int, start: float = 0.0) -> np.ndarray:
    pts = np.zeros(n, dtype=POINT_DTYPE)
    base = start + np.arange(n, dtype=np.float32)
    pts["x"] = base
    pts["y"] = base + 0.25
    pts["z"] = base + 0.5
    pts["intensity"] = base / 100.0
    return pts


def write_dataset(
    root: Path,
    timestamps: Iterable[int],
    point_counts: Iterable[Optional[int]],
    sensor: str = "velodyne_points",
) -> List[Path]:
    """Lay out <root>/<sensor>/timestamps_start.txt and data/NNNNNNNNNN.bin.

    A ``None`` point count writes an empty file.
    """
    sensor_dir = root / sensor
    data_dir = sensor_dir / "data"
    data_dir.mkdir(parents=True)
    (sensor_dir / "timestamps_start.txt").write_text("".join(f"{t}\n" for t in timestamps))
    paths = []
    for i, n in enumerate(point_counts):
        path = data_dir / f"{i:010d}.bin"
        if n is None:
            path.write_bytes(b"")
        else:
            path.write_bytes(make_points(n, start=i * 1000.0).tobytes())
        paths.append(path)
    return paths


class FakeTimer:
    """Records every arm() instead of waiting; tests fire ticks by hand."""

    def __init__(self, callback):
        self.callback = callback
        self.delays: List[int] = []
        self.cancelled = False

    def arm(self, delay_ns: int) -> None:
        self.delays.append(delay_ns)

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self, times: int = 1) -> None:
        for _ in range(times):
            self.callback()


@pytest.fixture
def fake_timers():
    timers: List[FakeTimer] = []

    def factory(callback):
        timer = FakeTimer(callback)
        timers.append(timer)
        return timer

    factory.timers = timers
    return factory
