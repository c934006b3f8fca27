"""Helpers for configuring the ROS 2 QoS profile of the cloud publisher.

These helpers keep the CLI parsing layer decoupled from ``rclpy`` so we can
parse/validate QoS-related flags even when ROS 2 is not installed. Profiles
are plain dictionaries; ``to_qos_profile`` translates them into an
``rclpy.qos.QoSProfile`` once ROS 2 is available.
"""

from __future__ import annotations

import math
from typing import Dict, Optional

DEFAULT_RELIABILITY = "reliable"
DEFAULT_DURABILITY = "volatile"
DEFAULT_DEPTH = 2
# A subscriber that sees no cloud for this long treats the publisher as late/dead.
DEFAULT_DEADLINE_S = 1.0
DEFAULT_LIVELINESS_LEASE_S = 1.0


def default_qos_profile() -> Dict[str, object]:
    """Return a copy of the default QoS profile."""

    return {
        "reliability": DEFAULT_RELIABILITY,
        "durability": DEFAULT_DURABILITY,
        "depth": DEFAULT_DEPTH,
        "deadline_s": DEFAULT_DEADLINE_S,
        "liveliness_lease_s": DEFAULT_LIVELINESS_LEASE_S,
    }


_VALID_RELIABILITY = {"reliable", "best_effort"}
_VALID_DURABILITY = {"volatile", "transient_local"}


def _positive_seconds(value: float, what: str) -> float:
    value = float(value)
    if not math.isfinite(value) or value <= 0.0:
        raise ValueError(f"QoS {what} must be a positive number of seconds, got {value!r}")
    return value


def parse_qos_options(
    reliability: Optional[str] = None,
    durability: Optional[str] = None,
    depth: Optional[int] = None,
    deadline_s: Optional[float] = None,
    liveliness_lease_s: Optional[float] = None,
) -> Dict[str, object]:
    """Validate QoS CLI flags and return a profile dictionary."""

    profile = default_qos_profile()
    if reliability:
        norm = reliability.lower()
        if norm not in _VALID_RELIABILITY:
            raise ValueError(f"Unsupported reliability policy {reliability!r}")
        profile["reliability"] = norm
    if durability:
        norm = durability.lower()
        if norm not in _VALID_DURABILITY:
            raise ValueError(f"Unsupported durability policy {durability!r}")
        profile["durability"] = norm
    if depth is not None:
        if depth <= 0:
            raise ValueError("QoS depth must be positive")
        profile["depth"] = int(depth)
    if deadline_s is not None:
        profile["deadline_s"] = _positive_seconds(deadline_s, "deadline")
    if liveliness_lease_s is not None:
        profile["liveliness_lease_s"] = _positive_seconds(liveliness_lease_s, "liveliness lease")
    return profile


def to_qos_profile(profile: Dict[str, object]):  # pragma: no cover - requires ROS 2 runtime
    """Build an ``rclpy.qos.QoSProfile`` from a profile dictionary."""
    from rclpy.duration import Duration  # type: ignore
    from rclpy.qos import (  # type: ignore
        DurabilityPolicy,
        HistoryPolicy,
        LivelinessPolicy,
        QoSProfile,
        ReliabilityPolicy,
    )

    return QoSProfile(
        history=HistoryPolicy.KEEP_LAST,
        depth=int(profile.get("depth", DEFAULT_DEPTH)),
        reliability=(
            ReliabilityPolicy.RELIABLE
            if str(profile.get("reliability", DEFAULT_RELIABILITY)) == "reliable"
            else ReliabilityPolicy.BEST_EFFORT
        ),
        durability=(
            DurabilityPolicy.TRANSIENT_LOCAL
            if str(profile.get("durability", DEFAULT_DURABILITY)) == "transient_local"
            else DurabilityPolicy.VOLATILE
        ),
        deadline=Duration(nanoseconds=int(float(profile.get("deadline_s", DEFAULT_DEADLINE_S)) * 1e9)),
        liveliness=LivelinessPolicy.SYSTEM_DEFAULT,
        liveliness_lease_duration=Duration(
            nanoseconds=int(float(profile.get("liveliness_lease_s", DEFAULT_LIVELINESS_LEASE_S)) * 1e9)
        ),
    )
