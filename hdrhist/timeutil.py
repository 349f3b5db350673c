"""Second/nanosecond timestamps with millisecond conversion from floats."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class Timespec:
    """A point in time as whole seconds plus nanoseconds."""

    tv_sec: int = 0
    tv_nsec: int = 0

    def as_double(self) -> float:
        """Seconds as a float."""
        return float(self.tv_sec) + self.tv_nsec / 1_000_000_000.0


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def timespec_from_double(value: float) -> Timespec:
    """Build a timestamp from seconds, keeping only millisecond accuracy."""
    seconds = int(value)
    milliseconds = _round_half_away((value - seconds) * 1000)
    return Timespec(seconds, milliseconds * 1_000_000)


def gettime() -> Timespec:
    """Current reading of the monotonic clock."""
    seconds, nanoseconds = divmod(time.monotonic_ns(), 1_000_000_000)
    return Timespec(seconds, nanoseconds)