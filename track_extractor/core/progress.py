"""
Synthetic progress for tool calls that report none.

ffmpeg gives no usable completion percentage for stream copies, so the
estimator fakes a smooth curve: it starts at a floor, creeps up by a random
step for every elapsed tick and parks below a ceiling until the caller
declares completion. This is a UX smoothing heuristic, not a measurement;
nothing in the engine may base a decision on its value.
"""

import random
import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class ProgressHandle:
    value: float
    last_tick_at: float
    stopped: bool = False
    completed: bool = False

    @property
    def percent(self) -> int:
        return int(self.value)


class ProgressEstimator:
    def __init__(
        self,
        floor: int = 10,
        ceiling: int = 90,
        tick: float = 0.2,
        step_range: tuple[float, float] = (2.0, 10.0),
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ):
        if not 0 <= floor < ceiling < 100:
            raise ValueError("Progress bounds must satisfy 0 <= floor < ceiling < 100.")
        self.floor = floor
        self.ceiling = ceiling
        self.tick = tick
        self.step_min, self.step_max = step_range
        self.clock = clock
        self.rng = rng or random.Random()

    def start(self) -> ProgressHandle:
        return ProgressHandle(value=float(self.floor), last_tick_at=self.clock())

    def sample(self, handle: ProgressHandle) -> int:
        """
        Advances the curve by the ticks elapsed since the last sample.

        The ceiling is exclusive: samples top out one point below it.
        """
        if handle.stopped:
            return handle.percent
        now = self.clock()
        ticks = int((now - handle.last_tick_at) // self.tick)
        if ticks > 0:
            handle.last_tick_at += ticks * self.tick
            cap = float(self.ceiling - 1)
            for _ in range(ticks):
                if handle.value >= cap:
                    break
                step = self.step_min + self.rng.random() * (self.step_max - self.step_min)
                handle.value = min(handle.value + step, cap)
        return handle.percent

    def stop(self, handle: ProgressHandle) -> int:
        """Freezes the handle at its current value."""
        handle.stopped = True
        return handle.percent

    def complete(self, handle: ProgressHandle) -> int:
        """Forces 100%; only call once the tool has signalled completion."""
        handle.value = 100.0
        handle.stopped = True
        handle.completed = True
        return 100
