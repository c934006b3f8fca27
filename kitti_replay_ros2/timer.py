"""Re-armable one-shot timer on top of an rclpy node timer."""

from __future__ import annotations

from typing import Callable

from kitti_replay.scheduler import ReschedulableTimer


class RclpyTimer(ReschedulableTimer):
    """One steady-clock rclpy timer, re-armed with a new period every tick.

    The timer is cancelled as soon as it fires so it behaves as one-shot;
    ``arm`` changes the period and resets it, which also reactivates it.
    """

    def __init__(self, node, callback: Callable[[], None], clock=None):
        if clock is None:  # pragma: no cover - requires ROS 2 runtime
            from rclpy.clock import Clock, ClockType  # type: ignore

            clock = Clock(clock_type=ClockType.STEADY_TIME)
        self._node = node
        self._callback = callback
        self._clock = clock
        self._timer = None

    def arm(self, delay_ns: int) -> None:
        delay_ns = max(0, int(delay_ns))
        if self._timer is None:
            self._timer = self._node.create_timer(delay_ns / 1e9, self._fire, clock=self._clock)
            return
        self._timer.timer_period_ns = delay_ns
        self._timer.reset()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    def _fire(self) -> None:
        self._timer.cancel()
        self._callback()
