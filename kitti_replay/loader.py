import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from .models import (
    FLOATS_PER_POINT, INT64_MAX, INT64_MIN, POINT_DTYPE, POINT_STEP, empty_points
)

logger = logging.getLogger("kitti_replay.loader")

PathLike = Union[str, os.PathLike]

DEFAULT_SCRATCH_FLOATS = 1_000_000  # ~4 MB, a KITTI sweep needs ~130k points

EMPTY_UNREADABLE = "unreadable"
EMPTY_NO_RECORDS = "no complete point records"


class ReplayDataError(RuntimeError):
    """Base class for dataset problems detected while loading."""


class DataNotFound(ReplayDataError):
    """A required file or directory is missing."""


class CardinalityMismatch(ReplayDataError):
    """Timestamp count and frame file count disagree."""


class ParseError(ReplayDataError, ValueError):
    """A timestamp line is not a signed 64-bit integer."""


class DataUnreadable(ReplayDataError):
    """A required file exists but cannot be read."""


@dataclass
class LoaderConfig:
    sensor_subdir: str = "velodyne_points"
    timestamps_name: str = "timestamps_start.txt"
    data_subdir: str = "data"
    extension: str = ".bin"
    scratch_floats: int = DEFAULT_SCRATCH_FLOATS


_TIMESTAMP_RE = re.compile(r"-?[0-9]+")


def read_timestamps(path: PathLike) -> List[int]:
    """Read one integer nanosecond timestamp per non-empty line, in file order.

    Lines are decoded one at a time, so undecodable bytes surface as a
    ``ParseError`` naming the line rather than a codec error.
    """
    path = Path(path)
    if not path.is_file():
        raise DataNotFound(f"Timestamp file {path} was not found")
    out: List[int] = []
    try:
        with open(path, "rb") as f:
            for lineno, raw in enumerate(f, start=1):
                try:
                    s = raw.decode("ascii").strip()
                except UnicodeDecodeError as exc:
                    raise ParseError(f"{path}:{lineno}: expected an integer timestamp, got {raw!r}") from exc
                if not s:
                    continue
                if not _TIMESTAMP_RE.fullmatch(s):
                    raise ParseError(f"{path}:{lineno}: expected an integer timestamp, got {s!r}")
                value = int(s)
                if value < INT64_MIN or value > INT64_MAX:
                    raise ParseError(f"{path}:{lineno}: timestamp {value} does not fit in 64 bits")
                out.append(value)
    except OSError as exc:
        raise DataUnreadable(f"Timestamp file {path} could not be read: {exc}") from exc
    logger.debug("Read %d timestamps from %s", len(out), path)
    return out


def list_frame_files(directory: PathLike, extension: str = ".bin") -> List[Path]:
    """Return files in ``directory`` with ``extension``, sorted by name.

    The dataset names frames with zero-padded indices, so a plain name sort
    is playback order.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise DataNotFound(f"Frame directory {directory} was not found")
    files = [p for p in directory.iterdir() if p.is_file() and p.suffix == extension]
    files.sort(key=lambda p: p.name)
    logger.debug("Found %d %s files in %s", len(files), extension, directory)
    return files


class BinFrameReader:
    """Decode raw float32 frames through one reusable scratch buffer."""

    def __init__(self, scratch_floats: int = DEFAULT_SCRATCH_FLOATS):
        if scratch_floats < FLOATS_PER_POINT:
            raise ValueError(f"Scratch buffer must hold at least one point, got {scratch_floats} floats")
        self._scratch = np.empty(int(scratch_floats), dtype="<f4")

    @property
    def scratch_floats(self) -> int:
        return int(self._scratch.shape[0])

    def _ensure_capacity(self, nbytes: int) -> None:
        needed = -(-nbytes // 4)
        if needed > self._scratch.shape[0]:
            logger.debug("Growing scratch buffer from %d to %d floats", self._scratch.shape[0], needed)
            self._scratch = np.empty(needed, dtype="<f4")

    def read(self, path: PathLike) -> np.ndarray:
        """Return the points in ``path``; an unreadable file yields no points.

        Bytes after the last complete 16-byte record are dropped.
        """
        return self.read_with_reason(path)[0]

    def read_with_reason(self, path: PathLike) -> Tuple[np.ndarray, Optional[str]]:
        """Like ``read``, plus why the result is empty (``None`` when it is not)."""
        path = Path(path)
        try:
            with open(path, "rb") as f:
                self._ensure_capacity(os.fstat(f.fileno()).st_size)
                raw = self._scratch.view(np.uint8)
                nbytes = 0
                while nbytes < raw.shape[0]:
                    n = f.readinto(raw[nbytes:])
                    if not n:
                        break
                    nbytes += n
        except OSError as exc:
            logger.warning("Could not read file %s: %s", path, exc)
            return empty_points(), EMPTY_UNREADABLE

        count = nbytes // POINT_STEP
        dropped = nbytes % POINT_STEP
        if dropped:
            logger.debug("Dropping %d trailing bytes from %s", dropped, path)
        if count == 0:
            return empty_points(), EMPTY_NO_RECORDS
        return self._scratch[:count * FLOATS_PER_POINT].copy().view(POINT_DTYPE), None


def load_points_from_bin(path: PathLike, reader: Optional[BinFrameReader] = None) -> np.ndarray:
    reader = reader or BinFrameReader()
    return reader.read(path)
