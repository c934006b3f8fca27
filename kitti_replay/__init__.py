"""kitti_replay: time-accurate replay of recorded point-cloud datasets.

This package provides:
- Data models for points, frames and pre-serialised cloud messages
- A loader for timestamp logs, frame directories and raw ``.bin`` frames
- A frame cache builder that packages every frame ahead of playback
- A self-rescheduling playback scheduler that reproduces capture cadence

Design intent:
Nothing in here depends on ROS 2. The transport is injected as a publish
callable plus a timer factory, so the same pipeline drives the ROS 2 node
(see ``kitti_replay_ros2``) and the log-only transport used in tests.
"""
__all__ = ["cache", "config", "loader", "models", "scheduler"]
__version__ = "0.1.0"
