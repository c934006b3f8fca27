from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

NANOSECONDS_PER_SECOND = 1_000_000_000
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

# One record per point, little-endian float32 x, y, z, intensity.
POINT_DTYPE = np.dtype([
    ("x", "<f4"),
    ("y", "<f4"),
    ("z", "<f4"),
    ("intensity", "<f4"),
])
POINT_STEP = POINT_DTYPE.itemsize  # 16 bytes
FLOATS_PER_POINT = len(POINT_DTYPE.names)


class PointFieldType(IntEnum):
    """Scalar type codes understood by PointCloud2 consumers."""
    INT8 = 1
    UINT8 = 2
    INT16 = 3
    UINT16 = 4
    INT32 = 5
    UINT32 = 6
    FLOAT32 = 7
    FLOAT64 = 8


@dataclass(frozen=True)
class PointFieldSpec:
    name: str
    offset: int
    datatype: int
    count: int = 1


def _fields_from_dtype(dtype: np.dtype) -> Tuple[PointFieldSpec, ...]:
    out = []
    for name in dtype.names:
        sub, offset = dtype.fields[name][:2]
        if sub != np.dtype("<f4"):
            raise ValueError(f"Unsupported point field type for {name!r}: {sub}")
        out.append(PointFieldSpec(name=name, offset=int(offset), datatype=PointFieldType.FLOAT32, count=1))
    return tuple(out)


POINT_FIELDS: Tuple[PointFieldSpec, ...] = _fields_from_dtype(POINT_DTYPE)


@dataclass(frozen=True)
class Stamp:
    """Header time split into whole seconds and the nanosecond remainder.

    ``sec`` is the floor of ``ns / 1e9`` so ``nanosec`` always lies in
    ``[0, 1e9)``. Integer arithmetic keeps the split exact for the whole
    int64 range, which a float multiply by 1e-9 does not.
    """
    sec: int
    nanosec: int

    @classmethod
    def from_nanoseconds(cls, ns: int) -> "Stamp":
        sec, nanosec = divmod(int(ns), NANOSECONDS_PER_SECOND)
        return cls(sec=sec, nanosec=nanosec)

    def to_nanoseconds(self) -> int:
        return self.sec * NANOSECONDS_PER_SECOND + self.nanosec


def empty_points() -> np.ndarray:
    return np.zeros(0, dtype=POINT_DTYPE)


@dataclass
class Frame:
    index: int
    timestamp_ns: int
    points: np.ndarray  # structured, POINT_DTYPE
    source_path: Optional[Path] = None

    @property
    def point_count(self) -> int:
        return int(self.points.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.point_count == 0


@dataclass(frozen=True)
class CachedCloud:
    """Ready-to-publish cloud; mirrors the PointCloud2 layout field for field."""
    frame_id: str
    stamp: Stamp
    width: int
    fields: Tuple[PointFieldSpec, ...]
    data: bytes
    timestamp_ns: int
    source_index: int
    source_path: Optional[Path] = None
    height: int = 1
    point_step: int = POINT_STEP
    is_bigendian: bool = False
    is_dense: bool = True

    @property
    def row_step(self) -> int:
        return self.point_step * self.width

    def points(self) -> np.ndarray:
        """Read-only structured view over ``data``."""
        return np.frombuffer(self.data, dtype=POINT_DTYPE)


@dataclass(frozen=True)
class EmptyFrame:
    """A frame that was left out of the cache because it held no points."""
    index: int
    timestamp_ns: int
    source_path: Path
    reason: str
