"""Exact rational time-base conversion for timestamps."""

from __future__ import annotations

import math
from fractions import Fraction
from typing import Any, Optional, Union

TimeBaseLike = Union[Fraction, int, str]

_HALF = Fraction(1, 2)


def as_time_base(value: Optional[TimeBaseLike]) -> Fraction:
    if value is None:
        raise ValueError("time base is not set")
    time_base = Fraction(value)
    if time_base <= 0:
        raise ValueError(f"invalid time base {value!r}")
    return time_base


def _round_half_away(value: Fraction) -> int:
    magnitude = math.floor(abs(value) + _HALF)
    return magnitude if value >= 0 else -magnitude


def rescale(value: Optional[int], src: TimeBaseLike, dst: TimeBaseLike) -> Optional[int]:
    """Convert ``value`` ticks of ``src`` into ticks of ``dst``.

    Rounds to nearest with ties away from zero, the same rule FFmpeg's
    ``av_rescale_q`` applies. ``None`` (no timestamp) passes through.
    """
    if value is None:
        return None
    src_tb = as_time_base(src)
    dst_tb = as_time_base(dst)
    if src_tb == dst_tb:
        return int(value)
    return _round_half_away(Fraction(int(value)) * src_tb / dst_tb)


def rescale_packet(packet: Any, src: TimeBaseLike, dst: TimeBaseLike) -> None:
    """Rescale pts, dts and duration of ``packet`` in place and tag it with ``dst``."""
    packet.pts = rescale(packet.pts, src, dst)
    packet.dts = rescale(packet.dts, src, dst)
    duration = getattr(packet, "duration", None)
    if duration:
        packet.duration = rescale(duration, src, dst)
    packet.time_base = as_time_base(dst)


__all__ = ["as_time_base", "rescale", "rescale_packet"]
