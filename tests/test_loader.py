from pathlib import Path

import numpy as np
import pytest

import kitti_replay.loader as loader_module
from kitti_replay.loader import (
    EMPTY_NO_RECORDS,
    EMPTY_UNREADABLE,
    BinFrameReader,
    DataNotFound,
    DataUnreadable,
    ParseError,
    list_frame_files,
    load_points_from_bin,
    read_timestamps,
)
from kitti_replay.models import POINT_DTYPE

from conftest import make_points


def test_read_timestamps_keeps_file_order_and_skips_blank_lines(tmp_path: Path):
    path = tmp_path / "timestamps_start.txt"
    path.write_text("300\n\n100\n  200  \n100\n")
    assert read_timestamps(path) == [300, 100, 200, 100]


def test_read_timestamps_accepts_negative_values(tmp_path: Path):
    path = tmp_path / "ts.txt"
    path.write_text("-5\n0\n")
    assert read_timestamps(path) == [-5, 0]


def test_read_timestamps_missing_file(tmp_path: Path):
    with pytest.raises(DataNotFound):
        read_timestamps(tmp_path / "nope.txt")


def test_read_timestamps_rejects_non_integer_line(tmp_path: Path):
    path = tmp_path / "ts.txt"
    path.write_text("100\n2011-09-26 13:02:25.594\n")
    with pytest.raises(ParseError) as err:
        read_timestamps(path)
    assert ":2:" in str(err.value)


def test_read_timestamps_rejects_values_outside_int64(tmp_path: Path):
    path = tmp_path / "ts.txt"
    path.write_text(f"{2 ** 63}\n")
    with pytest.raises(ParseError):
        read_timestamps(path)


def test_parse_error_is_a_value_error(tmp_path: Path):
    path = tmp_path / "ts.txt"
    path.write_text("1.5\n")
    with pytest.raises(ValueError):
        read_timestamps(path)


def test_list_frame_files_sorts_by_name_and_filters_extension(tmp_path: Path):
    for name in ["0000000002.bin", "0000000000.bin", "0000000001.bin", "notes.txt", "0000000003.BIN"]:
        (tmp_path / name).write_bytes(b"")
    (tmp_path / "subdir.bin").mkdir()
    files = list_frame_files(tmp_path, ".bin")
    assert [p.name for p in files] == ["0000000000.bin", "0000000001.bin", "0000000002.bin"]


def test_list_frame_files_empty_directory_is_not_an_error(tmp_path: Path):
    assert list_frame_files(tmp_path, ".bin") == []


def test_list_frame_files_missing_directory(tmp_path: Path):
    with pytest.raises(DataNotFound):
        list_frame_files(tmp_path / "missing", ".bin")


def test_reader_decodes_xyzi_records(tmp_path: Path):
    pts = make_points(5)
    path = tmp_path / "f.bin"
    path.write_bytes(pts.tobytes())
    out = load_points_from_bin(path)
    assert out.dtype == POINT_DTYPE
    assert out.shape == (5,)
    np.testing.assert_array_equal(out["x"], pts["x"])
    np.testing.assert_array_equal(out["intensity"], pts["intensity"])


@pytest.mark.parametrize("extra", [1, 4, 15])
def test_reader_drops_incomplete_trailing_record(tmp_path: Path, extra: int):
    pts = make_points(3)
    path = tmp_path / "f.bin"
    path.write_bytes(pts.tobytes() + b"\x01" * extra)
    out = BinFrameReader().read(path)
    assert out.shape == (3,)
    np.testing.assert_array_equal(out["z"], pts["z"])


def test_reader_short_file_yields_no_points(tmp_path: Path):
    path = tmp_path / "f.bin"
    path.write_bytes(b"\x00" * 12)
    assert BinFrameReader().read(path).shape == (0,)


def test_reader_unreadable_file_yields_no_points(tmp_path: Path):
    out = BinFrameReader().read(tmp_path / "missing.bin")
    assert out.shape == (0,)
    assert out.dtype == POINT_DTYPE


def test_reader_reuses_scratch_and_grows_for_large_frames(tmp_path: Path):
    reader = BinFrameReader(scratch_floats=8)
    small = tmp_path / "small.bin"
    small.write_bytes(make_points(2).tobytes())
    big = tmp_path / "big.bin"
    big.write_bytes(make_points(10).tobytes())

    assert reader.read(small).shape == (2,)
    assert reader.scratch_floats == 8
    out = reader.read(big)
    assert out.shape == (10,)
    assert reader.scratch_floats == 40
    # Results do not alias the scratch buffer.
    first = reader.read(small)
    reader.read(big)
    assert first["x"][1] == 1.0


def test_reader_rejects_tiny_scratch():
    with pytest.raises(ValueError):
        BinFrameReader(scratch_floats=3)


def test_read_timestamps_reports_undecodable_bytes_as_parse_error(tmp_path: Path):
    path = tmp_path / "ts.txt"
    path.write_bytes(b"100\n\xff\xfe\n")
    with pytest.raises(ParseError, match=r":2:"):
        read_timestamps(path)


@pytest.mark.parametrize("line", ["1_000", "+5", "١٢", "0x10", "1e3"])
def test_read_timestamps_accepts_only_ascii_decimal_integers(tmp_path: Path, line: str):
    path = tmp_path / "ts.txt"
    path.write_text(f"100\n{line}\n", encoding="utf-8")
    with pytest.raises(ParseError):
        read_timestamps(path)


def test_read_timestamps_wraps_os_errors(tmp_path: Path, monkeypatch):
    path = tmp_path / "ts.txt"
    path.write_text("100\n")

    def denied(*args, **kwargs):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr(loader_module, "open", denied, raising=False)
    with pytest.raises(DataUnreadable, match="could not be read"):
        read_timestamps(path)


def test_read_with_reason_distinguishes_empty_from_unreadable(tmp_path: Path):
    reader = BinFrameReader()
    short = tmp_path / "short.bin"
    short.write_bytes(b"\x00" * 15)
    directory = tmp_path / "0000000001.bin"
    directory.mkdir()
    good = tmp_path / "good.bin"
    good.write_bytes(make_points(2).tobytes())

    points, reason = reader.read_with_reason(short)
    assert points.shape == (0,)
    assert reason == EMPTY_NO_RECORDS

    points, reason = reader.read_with_reason(directory)
    assert points.shape == (0,)
    assert reason == EMPTY_UNREADABLE

    points, reason = reader.read_with_reason(good)
    assert points.shape == (2,)
    assert reason is None
