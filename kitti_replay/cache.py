"""Frame cache: every frame parsed and packaged before playback starts."""
from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from .loader import (
    BinFrameReader, CardinalityMismatch, DataNotFound, LoaderConfig,
    list_frame_files, read_timestamps,
)
from .models import POINT_FIELDS, CachedCloud, EmptyFrame, Frame, Stamp

logger = logging.getLogger("kitti_replay.cache")


class FrameCache:
    """Read-only, paired sequence of cached clouds and their timestamps.

    A skipped frame takes its timestamp with it, so ``timestamps_ns[i]`` is
    always the stamp of ``clouds[i]``.
    """

    def __init__(self, clouds: Sequence[CachedCloud], skipped: Sequence[EmptyFrame] = (),
                 source_count: Optional[int] = None):
        self._clouds: Tuple[CachedCloud, ...] = tuple(clouds)
        self._timestamps: Tuple[int, ...] = tuple(c.timestamp_ns for c in self._clouds)
        self._skipped: Tuple[EmptyFrame, ...] = tuple(skipped)
        self._source_count = (len(self._clouds) + len(self._skipped)
                              if source_count is None else int(source_count))

    def __len__(self) -> int:
        return len(self._clouds)

    def __getitem__(self, index: int) -> CachedCloud:
        return self._clouds[index]

    def __iter__(self) -> Iterator[CachedCloud]:
        return iter(self._clouds)

    @property
    def clouds(self) -> Tuple[CachedCloud, ...]:
        return self._clouds

    @property
    def timestamps_ns(self) -> Tuple[int, ...]:
        return self._timestamps

    @property
    def skipped(self) -> Tuple[EmptyFrame, ...]:
        return self._skipped

    @property
    def source_count(self) -> int:
        return self._source_count

    @property
    def total_points(self) -> int:
        return sum(c.width for c in self._clouds)

    @property
    def total_bytes(self) -> int:
        return sum(len(c.data) for c in self._clouds)


def build_cloud(frame: Frame, frame_id: str = "pointcloud") -> CachedCloud:
    """Package a non-empty frame into its outgoing message layout."""
    if frame.is_empty:
        raise ValueError(f"Frame {frame.index} has no points")
    return CachedCloud(
        frame_id=frame_id,
        stamp=Stamp.from_nanoseconds(frame.timestamp_ns),
        width=frame.point_count,
        fields=POINT_FIELDS,
        data=frame.points.tobytes(),
        timestamp_ns=int(frame.timestamp_ns),
        source_index=frame.index,
        source_path=frame.source_path,
    )


def build_frame_cache(
    timestamps: Sequence[int],
    files: Sequence[Union[str, os.PathLike]],
    *,
    frame_id: str = "pointcloud",
    reader: Optional[BinFrameReader] = None,
    kpi=None,
) -> FrameCache:
    if len(timestamps) != len(files):
        raise CardinalityMismatch(
            f"The number of timestamps ({len(timestamps)}) does not equal "
            f"the number of data files ({len(files)})"
        )
    reader = reader or BinFrameReader()
    clouds: List[CachedCloud] = []
    skipped: List[EmptyFrame] = []
    start = time.perf_counter()

    for index, (stamp_ns, path) in enumerate(zip(timestamps, files)):
        path = Path(path)
        points, reason = reader.read_with_reason(path)
        if reason is not None:
            logger.warning("Empty binary file %s (frame %d, %s); skipping", path, index, reason)
            skipped.append(EmptyFrame(index=index, timestamp_ns=int(stamp_ns), source_path=path, reason=reason))
            if kpi is not None:
                kpi.frame_skipped(index, str(path), reason)
            continue
        cloud = build_cloud(Frame(index=index, timestamp_ns=int(stamp_ns), points=points, source_path=path),
                            frame_id=frame_id)
        clouds.append(cloud)
        if kpi is not None:
            kpi.frame_cached(index, cloud.timestamp_ns, cloud.width, len(cloud.data))

    cache = FrameCache(clouds, skipped, source_count=len(files))
    duration = time.perf_counter() - start
    logger.info(
        "Cached %d/%d frames (%d skipped, %d points, %.1f MB) in %.2fs",
        len(cache), cache.source_count, len(cache.skipped),
        cache.total_points, cache.total_bytes / 1e6, duration,
    )
    if kpi is not None:
        kpi.cache_built(len(cache), len(cache.skipped), duration,
                        points=cache.total_points, bytes=cache.total_bytes)
    return cache


def load_frame_cache(
    dataset_root: Union[str, os.PathLike],
    cfg: Optional[LoaderConfig] = None,
    *,
    frame_id: str = "pointcloud",
    kpi=None,
) -> FrameCache:
    """Validate the dataset layout, then read, enumerate and cache it.

    Layout::

        <root>/<sensor_subdir>/timestamps_start.txt
        <root>/<sensor_subdir>/data/*.bin
    """
    cfg = cfg or LoaderConfig()
    root = Path(dataset_root)
    if not root.is_dir():
        raise DataNotFound(f"Specified data path {root} does not exist")
    sensor_dir = root / cfg.sensor_subdir
    timestamps_file = sensor_dir / cfg.timestamps_name
    if not timestamps_file.is_file():
        raise DataNotFound(f"Timestamp data file {cfg.timestamps_name} was not found in {sensor_dir}")
    data_dir = sensor_dir / cfg.data_subdir
    if not data_dir.is_dir():
        raise DataNotFound(f"Data path containing *{cfg.extension} files was not found at {data_dir}")

    timestamps = read_timestamps(timestamps_file)
    files = list_frame_files(data_dir, cfg.extension)
    logger.info("Read %d timestamps and %d data files from %s", len(timestamps), len(files), sensor_dir)
    return build_frame_cache(
        timestamps,
        files,
        frame_id=frame_id,
        reader=BinFrameReader(cfg.scratch_floats),
        kpi=kpi,
    )
