from typing import List

from kitti_replay_ros2.timer import RclpyTimer


class FakeNodeTimer:
    def __init__(self, period_s: float, callback, clock):
        self.timer_period_ns = int(round(period_s * 1e9))
        self.callback = callback
        self.clock = clock
        self.resets = 0
        self.cancels = 0

    def reset(self) -> None:
        self.resets += 1

    def cancel(self) -> None:
        self.cancels += 1


class FakeNode:
    def __init__(self):
        self.timers: List[FakeNodeTimer] = []

    def create_timer(self, period_s, callback, clock=None):
        timer = FakeNodeTimer(period_s, callback, clock)
        self.timers.append(timer)
        return timer


def test_first_arm_creates_one_timer_on_the_given_clock():
    node = FakeNode()
    clock = object()
    timer = RclpyTimer(node, lambda: None, clock=clock)
    timer.arm(250_000_000)
    assert len(node.timers) == 1
    assert node.timers[0].timer_period_ns == 250_000_000
    assert node.timers[0].clock is clock


def test_rearm_changes_period_and_resets_the_same_timer():
    node = FakeNode()
    timer = RclpyTimer(node, lambda: None, clock=object())
    timer.arm(100_000_000)
    timer.arm(40_000_000)
    timer.arm(-5)
    assert len(node.timers) == 1
    assert node.timers[0].timer_period_ns == 0
    assert node.timers[0].resets == 2


def test_firing_cancels_before_invoking_callback():
    node = FakeNode()
    seen = []

    def callback():
        seen.append(node.timers[0].cancels)

    timer = RclpyTimer(node, callback, clock=object())
    timer.arm(1_000)
    node.timers[0].callback()
    assert seen == [1]


def test_cancel_delegates_and_is_safe_before_arm():
    node = FakeNode()
    timer = RclpyTimer(node, lambda: None, clock=object())
    timer.cancel()
    timer.arm(1_000)
    timer.cancel()
    assert node.timers[0].cancels == 1
