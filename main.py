import argparse
import logging
import sys
import time

from kitti_replay.cache import FrameCache, load_frame_cache
from kitti_replay.config import ReplayConfig
from kitti_replay.loader import ReplayDataError
from kitti_replay.models import CachedCloud
from kitti_replay.scheduler import BlockingTimer, PlaybackError, PlaybackScheduler
from kitti_replay_common.kpi_logging import KPILogger
from kitti_replay_common.latency import TickTimingTracker
from kitti_replay_ros2.qos import parse_qos_options

logger = logging.getLogger("kitti_replay.main")


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Replay a recorded point-cloud dataset at its original cadence.")
    ap.add_argument("dataset", nargs="?", default=None,
                    help="Dataset root (contains <sensor-subdir>/timestamps_start.txt and <sensor-subdir>/data/*.bin); "
                         "defaults to $KITTI_REPLAY_DATASET")
    ap.add_argument("--sensor-subdir", default=None, help="Sensor directory under the dataset root (default velodyne_points)")
    ap.add_argument("--topic", default=None, help="Output topic (default pointcloud)")
    ap.add_argument("--frame-id", default=None, help="Header frame id (default pointcloud)")
    ap.add_argument("--sync-delay", type=float, default=None,
                    help="Seconds from startup until the first timer is armed (default 1.0)")
    ap.add_argument("--fallback-delay-ms", type=float, default=None,
                    help="Delay between the last frame and the wrap back to frame 0 (default 100)")
    ap.add_argument("--transport", choices=["ros2", "log"], default="ros2",
                    help="Publish over ROS 2, or only log each frame (no ROS 2 needed)")
    ap.add_argument("--max-ticks", type=int, default=0,
                    help="Stop the log transport after this many ticks (0 = run forever)")
    ap.add_argument("--qos-reliability", choices=["reliable", "best_effort"], default="reliable")
    ap.add_argument("--qos-durability", choices=["volatile", "transient_local"], default="volatile")
    ap.add_argument("--qos-depth", type=int, default=2)
    ap.add_argument("--qos-deadline", type=float, default=1.0, help="Deadline in seconds")
    ap.add_argument("--qos-lease", type=float, default=1.0, help="Liveliness lease duration in seconds")
    ap.add_argument("--kpi-log", default=None, help="Write KPI events as JSON lines to this file")
    ap.add_argument("--timing-report", default=None, help="Write per-tick timing stats as JSON on exit")
    ap.add_argument("--log", default="INFO", help="Logging level")
    return ap.parse_args(argv)


def build_config(args) -> ReplayConfig:
    fallback_ns = None
    if args.fallback_delay_ms is not None:
        fallback_ns = int(round(args.fallback_delay_ms * 1e6))
    cfg = ReplayConfig.from_env(
        dataset_root=args.dataset,
        sensor_subdir=args.sensor_subdir,
        topic=args.topic,
        frame_id=args.frame_id,
        sync_delay_s=args.sync_delay,
        fallback_delay_ns=fallback_ns,
    )
    return cfg.validate()


def _log_publish(cloud: CachedCloud) -> None:
    logger.info(
        "frame %d stamp=%d.%09d points=%d",
        cloud.source_index,
        cloud.stamp.sec,
        cloud.stamp.nanosec,
        cloud.width,
    )


def run_log_transport(cfg: ReplayConfig, cache: FrameCache, started: float, max_ticks: int,
                      kpi=None, timing=None) -> PlaybackScheduler:
    timers = []

    def make_timer(callback):
        timer = BlockingTimer(callback)
        timers.append(timer)
        return timer

    scheduler = PlaybackScheduler(
        cache,
        _log_publish,
        make_timer,
        fallback_delay_ns=cfg.fallback_delay_ns,
        kpi=kpi,
        timing=timing,
    )
    scheduler.start(not_before=started + cfg.sync_delay_s)
    try:
        timers[0].run(max_ticks=max_ticks if max_ticks > 0 else None)
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping playback")
    finally:
        scheduler.stop()
    return scheduler


def run_ros2_transport(cfg: ReplayConfig, cache: FrameCache, started: float, qos_profile,
                       kpi=None, timing=None) -> None:
    import rclpy
    from kitti_replay_ros2.node import PointCloudReplayNode

    rclpy.init()
    node = None
    try:
        node = PointCloudReplayNode(
            cache,
            cfg.topic,
            qos_profile,
            fallback_delay_ns=cfg.fallback_delay_ns,
            kpi=kpi,
            timing=timing,
        )
        node.start_playback(not_before=started + cfg.sync_delay_s)
        rclpy.spin(node)
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down publisher")
    finally:
        if node is not None:
            node.destroy_node()
        if rclpy.ok():
            rclpy.shutdown()


def main(argv=None) -> int:
    started = time.monotonic()
    args = parse_args(argv)
    logging.basicConfig(level=args.log.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        cfg = build_config(args)
        qos_profile = parse_qos_options(
            reliability=args.qos_reliability,
            durability=args.qos_durability,
            depth=args.qos_depth,
            deadline_s=args.qos_deadline,
            liveliness_lease_s=args.qos_lease,
        )
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    kpi = KPILogger(enabled=bool(args.kpi_log), log_path=args.kpi_log, emit_to_logger=False)
    timing = TickTimingTracker() if args.timing_report else None
    try:
        try:
            cache = load_frame_cache(
                cfg.dataset_root,
                cfg.loader_config(),
                frame_id=cfg.frame_id,
                kpi=kpi,
            )
        except ReplayDataError as exc:
            logger.error("Failed to load dataset %s: %s", cfg.dataset_root, exc)
            return 1

        try:
            if args.transport == "log":
                run_log_transport(cfg, cache, started, args.max_ticks, kpi=kpi, timing=timing)
            else:
                run_ros2_transport(cfg, cache, started, qos_profile, kpi=kpi, timing=timing)
        except PlaybackError as exc:
            logger.error("Cannot start playback: %s", exc)
            return 1
    finally:
        kpi.close()
        if timing is not None:
            timing.log_summary(logger)
            timing.export_json(args.timing_report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
