"""Translate cached clouds into ``sensor_msgs/PointCloud2`` messages."""

from __future__ import annotations

import array

from kitti_replay.models import CachedCloud


def to_pointcloud2(cloud: CachedCloud, msg_types=None):
    """Fill a PointCloud2 from ``cloud``.

    ``msg_types`` is a ``(PointCloud2, PointField)`` pair; by default both are
    imported from ``sensor_msgs.msg``.
    """
    if msg_types is None:  # pragma: no cover - requires ROS 2 runtime
        from sensor_msgs.msg import PointCloud2, PointField  # type: ignore
    else:
        PointCloud2, PointField = msg_types

    msg = PointCloud2()
    msg.header.frame_id = cloud.frame_id
    msg.header.stamp.sec = int(cloud.stamp.sec)
    msg.header.stamp.nanosec = int(cloud.stamp.nanosec)
    msg.height = cloud.height
    msg.width = cloud.width
    msg.is_bigendian = cloud.is_bigendian
    msg.point_step = cloud.point_step
    msg.row_step = cloud.row_step
    msg.is_dense = cloud.is_dense
    fields = []
    for spec in cloud.fields:
        field = PointField()
        field.name = spec.name
        field.offset = spec.offset
        field.datatype = int(spec.datatype)
        field.count = spec.count
        fields.append(field)
    msg.fields = fields
    msg.data = array.array("B", cloud.data)
    return msg
