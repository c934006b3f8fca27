"""Self-rescheduling playback of a frame cache at its recorded cadence."""
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Optional

from .cache import FrameCache
from .models import CachedCloud

logger = logging.getLogger("kitti_replay.scheduler")

FALLBACK_DELAY_NS = 100_000_000
PROGRESS_EVERY = 100


class PlaybackError(RuntimeError):
    """Raised when playback is started in a state that cannot play."""


class PlaybackState(Enum):
    IDLE = "IDLE"
    SCHEDULED = "SCHEDULED"
    PUBLISHING = "PUBLISHING"


class ReschedulableTimer:
    """One persistent timer handle that fires its callback once per ``arm``."""

    def arm(self, delay_ns: int) -> None:  # pragma: no cover - interface method
        raise NotImplementedError

    def cancel(self) -> None:  # pragma: no cover - default no-op
        return None


TimerFactory = Callable[[Callable[[], None]], ReschedulableTimer]


class BlockingTimer(ReschedulableTimer):
    """Cooperative timer for single-threaded use without an executor.

    ``arm`` only records the next deadline; ``run`` sleeps until it and
    fires the callback, which is expected to re-arm.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        *,
        clock: Callable[[], int] = time.monotonic_ns,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._callback = callback
        self._clock = clock
        self._sleep = sleep
        self._deadline_ns: Optional[int] = None

    @property
    def armed(self) -> bool:
        return self._deadline_ns is not None

    def arm(self, delay_ns: int) -> None:
        self._deadline_ns = self._clock() + max(0, int(delay_ns))

    def cancel(self) -> None:
        self._deadline_ns = None

    def run(self, max_ticks: Optional[int] = None) -> int:
        """Fire until cancelled or ``max_ticks`` callbacks ran; return the count."""
        fired = 0
        while self._deadline_ns is not None:
            if max_ticks is not None and fired >= max_ticks:
                break
            remaining = self._deadline_ns - self._clock()
            if remaining > 0:
                self._sleep(remaining / 1e9)
            self._deadline_ns = None
            self._callback()
            fired += 1
        return fired


class PlaybackScheduler:
    """Publish cached clouds in order, forever, spaced by their stamp deltas.

    Each tick publishes the current cloud, derives the next delay from the
    stamps of the current and next cloud (or the fallback delay when the
    next tick wraps to frame 0), advances the cursor and re-arms the one
    timer it owns. Ticks never overlap, so the cursor needs no locking.
    """

    def __init__(
        self,
        cache: FrameCache,
        publish: Callable[[CachedCloud], None],
        timer_factory: TimerFactory,
        *,
        fallback_delay_ns: int = FALLBACK_DELAY_NS,
        kpi=None,
        timing=None,
        clock: Callable[[], int] = time.monotonic_ns,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if fallback_delay_ns < 0:
            raise ValueError(f"Fallback delay must be >= 0, got {fallback_delay_ns}")
        self._cache = cache
        self._timestamps = cache.timestamps_ns
        self._publish = publish
        self._timer_factory = timer_factory
        self._fallback_delay_ns = int(fallback_delay_ns)
        self._kpi = kpi
        self._timing = timing
        self._clock = clock
        self._sleep = sleep

        self._timer: Optional[ReschedulableTimer] = None
        self._state = PlaybackState.IDLE
        self._index = 0
        self._armed_at_ns: Optional[int] = None
        self._armed_delay_ns = 0
        self._tick_count = 0
        self._published_count = 0
        self._failed_count = 0
        self._loop_count = 0

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def published_count(self) -> int:
        return self._published_count

    @property
    def failed_count(self) -> int:
        return self._failed_count

    @property
    def loop_count(self) -> int:
        """Completed passes over the cache."""
        return self._loop_count

    @property
    def timer(self) -> Optional[ReschedulableTimer]:
        return self._timer

    def initial_delay_ns(self) -> int:
        if len(self._timestamps) < 2:
            return self._fallback_delay_ns
        return self._delta_ns(0)

    def start(self, not_before: Optional[float] = None) -> None:
        """Arm the first tick.

        ``not_before`` is an instant in seconds on the scheduler clock
        (``time.monotonic()`` by default); the calling thread blocks until
        then so playback starts on an external sync point.
        """
        if self._state is not PlaybackState.IDLE:
            raise PlaybackError(f"Playback already started (state={self._state.value})")
        if len(self._cache) == 0:
            raise PlaybackError("Frame cache is empty; nothing to play back")
        if len(self._cache) == 1:
            logger.warning("Single-frame dataset; looping every %.3fs", self._fallback_delay_ns / 1e9)

        if not_before is not None:
            remaining = not_before - self._clock() / 1e9
            if remaining > 0.0:
                logger.info("Waiting %.2fs for synchronization before playback", remaining)
                self._sleep(remaining)

        if self._timer is None:
            self._timer = self._timer_factory(self._on_tick)
        delay = self.initial_delay_ns()
        self._state = PlaybackState.SCHEDULED
        logger.info("Starting playback of %d frames; first frame in %.3fs", len(self._cache), delay / 1e9)
        self._arm(delay)

    def stop(self) -> None:
        """Cancel the pending tick on shutdown."""
        if self._timer is not None:
            self._timer.cancel()

    def _arm(self, delay_ns: int) -> None:
        self._armed_at_ns = self._clock()
        self._armed_delay_ns = delay_ns
        self._timer.arm(delay_ns)

    def _delta_ns(self, index: int) -> int:
        delta = self._timestamps[index + 1] - self._timestamps[index]
        if delta < 0:
            logger.warning(
                "Timestamps go backwards between frames %d and %d (%dns); using 0",
                index, index + 1, delta,
            )
            return 0
        return delta

    def next_delay_ns(self, index: int) -> int:
        """Delay to wait after publishing ``index`` before the next publish."""
        if index + 1 != len(self._timestamps):
            return self._delta_ns(index)
        return self._fallback_delay_ns

    def _on_tick(self) -> None:
        fired_at = self._clock()
        self._state = PlaybackState.PUBLISHING
        self._tick_count += 1

        if self._index == len(self._cache):
            self._index = 0
            self._loop_count += 1

        index = self._index
        if self._timing is not None and self._armed_at_ns is not None:
            self._timing.record_tick(index, self._armed_delay_ns, fired_at - self._armed_at_ns)

        delay = self.next_delay_ns(index)
        try:
            cloud = self._cache[index]
            self._publish(cloud)
        except Exception as exc:
            self._failed_count += 1
            logger.error("Failed to publish frame %d: %s", index, exc)
            if self._kpi is not None:
                self._kpi.publish_failed(index, str(exc))
        else:
            self._published_count += 1
            if self._kpi is not None:
                self._kpi.frame_published(index, cloud.timestamp_ns, delay, self._loop_count)
            if self._published_count % PROGRESS_EVERY == 0:
                logger.info("Published %d frames (loop %d)", self._published_count, self._loop_count)
        finally:
            self._index = index + 1
            self._state = PlaybackState.SCHEDULED
            self._arm(delay)
