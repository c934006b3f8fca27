"""ROS 2 node that replays a cached point-cloud dataset on one topic."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from rclpy.node import Node
from sensor_msgs.msg import PointCloud2

from kitti_replay.cache import FrameCache
from kitti_replay.models import CachedCloud
from kitti_replay.scheduler import FALLBACK_DELAY_NS, PlaybackScheduler

from .pointcloud_msg import to_pointcloud2
from .qos import default_qos_profile, to_qos_profile
from .timer import RclpyTimer

logger = logging.getLogger("kitti_replay_ros2.node")

NODE_NAME = "point_cloud_reader_publisher_node"


class PointCloudReplayNode(Node):
    """Publish every cloud of ``cache`` on ``topic`` at its recorded cadence."""

    def __init__(
        self,
        cache: FrameCache,
        topic: str = "pointcloud",
        qos_profile: Optional[Dict[str, object]] = None,
        *,
        fallback_delay_ns: int = FALLBACK_DELAY_NS,
        kpi=None,
        timing=None,
    ) -> None:
        super().__init__(NODE_NAME)
        self._topic = topic
        self._qos_profile = dict(qos_profile or default_qos_profile())
        self._publisher = self.create_publisher(PointCloud2, topic, to_qos_profile(self._qos_profile))

        # Converted once; ticks only hand prebuilt messages to the publisher.
        self._messages: Dict[int, PointCloud2] = {cloud.source_index: to_pointcloud2(cloud) for cloud in cache}
        self._scheduler = PlaybackScheduler(
            cache,
            self._publish_cloud,
            lambda callback: RclpyTimer(self, callback),
            fallback_delay_ns=fallback_delay_ns,
            kpi=kpi,
            timing=timing,
        )
        logger.info(
            "Publishing %d clouds on %s (qos=%s)",
            len(self._messages),
            topic,
            self._qos_profile,
        )

    @property
    def scheduler(self) -> PlaybackScheduler:
        return self._scheduler

    def start_playback(self, not_before: Optional[float] = None) -> None:
        self._scheduler.start(not_before=not_before)

    def _publish_cloud(self, cloud: CachedCloud) -> None:
        self._publisher.publish(self._messages[cloud.source_index])

    def destroy_node(self):
        self._scheduler.stop()
        return super().destroy_node()
