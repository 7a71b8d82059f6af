"""Helpers for checking metrics backends in tests."""

from __future__ import annotations

import math
import random
import re
from typing import Any, Callable

COUNT = 12345
"""Number of observations made by :func:`populate_normal_histogram`."""

MEAN = 500
"""Centre of the normal distribution of observations."""

STDEV = 25
"""Standard deviation of the normal distribution of observations."""


def check_counter(counter: Any, value: Callable[[], float]) -> None:
    """Fill the counter and raise AssertionError if ``value()`` disagrees."""
    want = fill_counter(counter)
    have = value()
    if want != have:
        raise AssertionError(f"want {want:f}, have {have:f}")


def fill_counter(counter: Any) -> float:
    """Add some deltas to the counter and return their total."""
    deltas = random.sample(range(100), 100)
    n = random.randrange(len(deltas))
    want = 0.0
    for delta in deltas[:n]:
        counter.add(float(delta))
        want += float(delta)
    return want


def check_gauge(gauge: Any, value: Callable[[], list[float]]) -> None:
    """Set and add values on the gauge, then check what ``value()`` reports.

    A single reported value must equal the last one; several must equal
    every value the gauge held, in any order.
    """
    deltas = [float(d) for d in random.sample(range(100), 100)]
    n = random.randrange(len(deltas))

    want: list[float] = []
    for f in deltas[:n]:
        gauge.set(f)
        want.append(f)
    for f in deltas[:n]:
        gauge.add(f)
        want.append(want[-1] + f)

    have = list(value())

    if not have:
        raise AssertionError("got 0 values")
    if len(have) == 1:
        if not want or have[0] != want[-1]:
            raise AssertionError(f"want {want}, have {have}")
    elif sorted(want) != sorted(have):
        raise AssertionError(f"want {sorted(want)}, have {sorted(have)}")


def check_histogram(
    histogram: Any,
    quantiles: Callable[[], tuple[float, float, float, float]],
    tolerance: float,
) -> None:
    """Populate the histogram and check its p50, p90, p95 and p99.

    Raises AssertionError listing every quantile whose relative error
    exceeds ``tolerance``.
    """
    populate_normal_histogram(histogram, random.getrandbits(63))

    wants = normal_quantiles()
    haves = quantiles()

    errors = [
        f"{label}: want {want:f}, have {have:f}"
        for label, want, have in zip(("p50", "p90", "p95", "p99"), wants, haves)
        if not _within(want, have, tolerance)
    ]
    if errors:
        raise AssertionError("; ".join(errors))


def populate_normal_histogram(histogram: Any, seed: int) -> None:
    """Observe COUNT normally distributed values, clamped at zero."""
    rng = random.Random(seed)
    for _ in range(COUNT):
        sample = rng.gauss(0.0, 1.0) * STDEV + MEAN
        histogram.observe(max(sample, 0.0))


def normal_quantiles() -> tuple[float, float, float, float]:
    """Return the expected p50, p90, p95 and p99 of the distribution."""
    return _quantile(50), _quantile(90), _quantile(95), _quantile(99)


def _quantile(percent: int) -> float:
    return MEAN + STDEV * math.sqrt(2) * erfinv(2 * (percent / 100) - 1)


_A = (0.886226899, -1.645349621, 0.914624893, -0.140543331)
_B = (-2.118377725, 1.442710462, -0.329097515, 0.012229801)
_C = (-1.970840454, -1.624906493, 3.429567803, 1.641345311)
_D = (3.543889200, 1.637067800)
_Y0 = 0.7


def erfinv(y: float) -> float:
    """Approximate the inverse error function on [-1, 1]."""
    if y < -1.0 or y > 1.0:
        raise ValueError("invalid input")

    a, b, c, d = _A, _B, _C, _D

    if abs(y) == 1.0:
        return math.copysign(math.inf, y)
    if y < -_Y0:
        z = math.sqrt(-math.log((1.0 + y) / 2.0))
        return -(((c[3] * z + c[2]) * z + c[1]) * z + c[0]) / ((d[1] * z + d[0]) * z + 1.0)

    if y < _Y0:
        z = y * y
        x = y * (((a[3] * z + a[2]) * z + a[1]) * z + a[0]) / (
            (((b[3] * z + b[3]) * z + b[1]) * z + b[0]) * z + 1.0
        )
    else:
        z = math.sqrt(-math.log((1.0 - y) / 2.0))
        x = (((c[3] * z + c[2]) * z + c[1]) * z + c[0]) / ((d[1] * z + d[0]) * z + 1.0)

    for _ in range(2):
        x -= (math.erf(x) - y) / (2.0 / math.sqrt(math.pi) * math.exp(-x * x))
    return x


def expected_observations_less_than(bucket: int) -> int:
    """Return how many observations should be at or below ``bucket``."""
    cdf = 0.5 * (1 + math.erf((bucket - MEAN) / (STDEV * math.sqrt(2))))
    return int(cdf * COUNT)


def sum_lines(source: Any, regex: str) -> Callable[[], float]:
    """Return a function summing the number captured from every line.

    ``source`` is a callable returning the text, or an object with
    ``getvalue()`` such as io.StringIO. The first group of ``regex`` must
    capture a float on each line.
    """

    def total() -> float:
        return _stats(source, regex)[0]

    return total


def last_line(source: Any, regex: str) -> Callable[[], list[float]]:
    """Return a function giving the number captured from the last line."""

    def final() -> list[float]:
        return [_stats(source, regex)[1]]

    return final


def _dump(source: Any) -> str:
    data = source() if callable(source) else source.getvalue()
    if isinstance(data, (bytes, bytearray)):
        data = bytes(data).decode()
    return data


def _stats(source: Any, regex: str) -> tuple[float, float]:
    pattern = re.compile(regex)
    total = 0.0
    final = 0.0
    for line in _dump(source).splitlines():
        match = pattern.search(line)
        if match is None:
            raise ValueError(f"line {line!r} does not match {regex!r}")
        value = float(match.group(1))
        total += value
        final = value
    return total, final


def _within(want: float, have: float, tolerance: float) -> bool:
    return abs(want - have) / want <= tolerance