"""A stopwatch that reports elapsed time to a histogram."""

from __future__ import annotations

import time
from typing import Any


class Timer:
    """Measure elapsed time and forward it to a histogram.

    The timer starts when it is created. ``unit`` is the length, in seconds,
    of one unit of the emitted value: 1.0 gives seconds, 1e-3 milliseconds.
    It can also be used as a context manager, observing on exit.
    """

    def __init__(self, histogram: Any, unit: float = 1.0) -> None:
        self.histogram = histogram
        self.unit = unit
        self._start = time.perf_counter()

    def observe_duration(self) -> None:
        """Observe the time since the timer was created, in ``unit``s."""
        elapsed = (time.perf_counter() - self._start) / self.unit
        self.histogram.observe(max(elapsed, 0.0))

    def __enter__(self) -> "Timer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.observe_duration()