"""Synthetic fan readings for hosts without a fan sensor.

Only used when ``sensors.synthetic_fan`` is enabled in the config. The
values are demo data and every snapshot built from them is flagged as such.
"""

import random

from hostmon.models import FanReading


class SyntheticFan:
    """Bounded random walk around a plausible fan speed."""

    def __init__(
        self,
        low: int = 800,
        high: int = 3000,
        step: int = 150,
        seed: int | None = None,
    ) -> None:
        if low >= high:
            raise ValueError(f"low must be < high, got {low} >= {high}")
        self._low = low
        self._high = high
        self._step = step
        self._rng = random.Random(seed)
        self._speed = (low + high) // 2

    def read(self) -> FanReading:
        """Advance the walk one step and return the new reading."""
        self._speed += self._rng.randint(-self._step, self._step)
        self._speed = max(self._low, min(self._high, self._speed))
        return FanReading(speed_rpm=self._speed)
