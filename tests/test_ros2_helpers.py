from types import SimpleNamespace

import pytest

from kitti_replay.cache import build_cloud
from kitti_replay.models import Frame
from kitti_replay_ros2.pointcloud_msg import to_pointcloud2
from kitti_replay_ros2.qos import default_qos_profile, parse_qos_options

from conftest import make_points


def test_default_qos_profile():
    assert default_qos_profile() == {
        "reliability": "reliable",
        "durability": "volatile",
        "depth": 2,
        "deadline_s": 1.0,
        "liveliness_lease_s": 1.0,
    }


def test_parse_qos_options_normalises_values():
    profile = parse_qos_options(reliability="BEST_EFFORT", durability="transient_local", depth=5,
                                deadline_s=0.5, liveliness_lease_s=2)
    assert profile["reliability"] == "best_effort"
    assert profile["durability"] == "transient_local"
    assert profile["depth"] == 5
    assert profile["deadline_s"] == 0.5
    assert profile["liveliness_lease_s"] == 2.0


@pytest.mark.parametrize("kwargs", [
    {"reliability": "sometimes"},
    {"durability": "forever"},
    {"depth": 0},
    {"deadline_s": 0.0},
    {"liveliness_lease_s": float("nan")},
])
def test_parse_qos_options_rejects_invalid(kwargs):
    with pytest.raises(ValueError):
        parse_qos_options(**kwargs)


class _FakePointCloud2:
    def __init__(self):
        self.header = SimpleNamespace(frame_id="", stamp=SimpleNamespace(sec=0, nanosec=0))


class _FakePointField:
    pass


def test_to_pointcloud2_fills_every_field():
    pts = make_points(3)
    cloud = build_cloud(Frame(index=0, timestamp_ns=1_317_046_946_123_456_789, points=pts), frame_id="velo")
    msg = to_pointcloud2(cloud, msg_types=(_FakePointCloud2, _FakePointField))

    assert msg.header.frame_id == "velo"
    assert (msg.header.stamp.sec, msg.header.stamp.nanosec) == (1_317_046_946, 123_456_789)
    assert (msg.height, msg.width) == (1, 3)
    assert (msg.point_step, msg.row_step) == (16, 48)
    assert msg.is_dense is True
    assert msg.is_bigendian is False
    assert [(f.name, f.offset, f.datatype, f.count) for f in msg.fields] == [
        ("x", 0, 7, 1), ("y", 4, 7, 1), ("z", 8, 7, 1), ("intensity", 12, 7, 1),
    ]
    assert bytes(msg.data) == pts.tobytes()
