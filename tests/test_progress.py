import random

import pytest

from track_extractor.core.progress import ProgressEstimator

# Exactly representable, so elapsed time divides into whole ticks
TICK = 0.25


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def estimator(clock):
    return ProgressEstimator(tick=TICK, clock=clock, rng=random.Random(42))


def test_starts_at_the_floor(estimator):
    handle = estimator.start()

    assert handle.percent == 10
    assert estimator.sample(handle) == 10


def test_no_advance_within_a_tick(estimator, clock):
    handle = estimator.start()
    clock.advance(0.2)

    assert estimator.sample(handle) == 10


def test_each_tick_adds_a_bounded_step(estimator, clock):
    handle = estimator.start()
    previous = handle.value

    for _ in range(5):
        clock.advance(TICK)
        estimator.sample(handle)
        step = handle.value - previous
        assert 2.0 <= step < 10.0
        previous = handle.value


def test_missed_ticks_are_caught_up(clock):
    estimator = ProgressEstimator(tick=TICK, clock=clock, step_range=(3.0, 3.0))
    handle = estimator.start()

    clock.advance(1.0)

    assert estimator.sample(handle) == 22


def test_values_are_monotone_and_stay_below_the_ceiling(estimator, clock):
    handle = estimator.start()
    seen = []

    for _ in range(200):
        clock.advance(TICK)
        seen.append(estimator.sample(handle))

    assert seen == sorted(seen)
    assert max(seen) == 89
    assert 100 not in seen


def test_stop_freezes_the_value(estimator, clock):
    handle = estimator.start()
    clock.advance(3 * TICK)
    frozen = estimator.sample(handle)

    assert estimator.stop(handle) == frozen
    clock.advance(5.0)
    assert estimator.sample(handle) == frozen


def test_only_complete_reaches_one_hundred(estimator, clock):
    handle = estimator.start()
    clock.advance(60.0)
    assert estimator.sample(handle) == 89

    assert estimator.complete(handle) == 100
    assert handle.completed
    clock.advance(1.0)
    assert estimator.sample(handle) == 100


def test_same_seed_gives_same_curve():
    curves = []
    for _ in range(2):
        local = FakeClock()
        estimator = ProgressEstimator(tick=TICK, clock=local, rng=random.Random(3))
        handle = estimator.start()
        curve = []
        for _ in range(8):
            local.advance(TICK)
            curve.append(estimator.sample(handle))
        curves.append(curve)

    assert curves[0] == curves[1]


@pytest.mark.parametrize("floor, ceiling", [(90, 10), (10, 100), (-1, 50)])
def test_invalid_bounds_are_rejected(floor, ceiling):
    with pytest.raises(ValueError):
        ProgressEstimator(floor=floor, ceiling=ceiling)
