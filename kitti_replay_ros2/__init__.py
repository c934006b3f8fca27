"""ROS 2 transport for kitti_replay.

``qos``, ``pointcloud_msg`` and ``timer`` import ``rclpy``/``sensor_msgs`` lazily so
they can be imported (and the QoS parsing unit tested) without ROS 2
installed. ``kitti_replay_ros2.node`` needs a sourced ROS 2 environment and
is deliberately not imported here.
"""

from .pointcloud_msg import to_pointcloud2
from .qos import default_qos_profile, parse_qos_options, to_qos_profile
from .timer import RclpyTimer

__all__ = [
    "RclpyTimer",
    "default_qos_profile",
    "parse_qos_options",
    "to_pointcloud2",
    "to_qos_profile",
]
