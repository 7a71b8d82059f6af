import time

import pytest

from servicekit.metrics.timer import Timer


class RecordingHistogram:
    def __init__(self):
        self.observations = []

    def observe(self, value):
        self.observations.append(value)

    def average(self):
        return sum(self.observations) / len(self.observations)


def test_timer_fast():
    h = RecordingHistogram()
    Timer(h).observe_duration()
    assert abs(0.000 - h.average()) <= 0.050


def test_timer_slow():
    h = RecordingHistogram()
    timer = Timer(h)
    time.sleep(0.250)
    timer.observe_duration()
    assert abs(0.250 - h.average()) <= 0.050


@pytest.mark.parametrize(
    "unit, tolerance, want",
    [
        (1.0, 0.010, 0.100),
        (1e-3, 10, 100),
        (1e-9, 10000000, 100000000),
    ],
    ids=["seconds", "milliseconds", "nanoseconds"],
)
def test_timer_unit(unit, tolerance, want):
    h = RecordingHistogram()
    timer = Timer(h)
    time.sleep(0.100)
    timer.unit = unit
    timer.observe_duration()
    assert abs(want - h.average()) <= tolerance


def test_timer_context_manager_observes_once():
    h = RecordingHistogram()
    with Timer(h):
        time.sleep(0.050)
    assert len(h.observations) == 1
    assert abs(0.050 - h.observations[0]) <= 0.040


def test_timer_never_observes_negative():
    h = RecordingHistogram()
    timer = Timer(h)
    timer.observe_duration()
    timer.observe_duration()
    assert all(value >= 0 for value in h.observations)
    assert h.observations[1] >= h.observations[0]