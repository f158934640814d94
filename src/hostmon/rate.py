"""Delta-over-time derivation for monotonic OS counters."""

from collections.abc import Hashable, Iterable

import structlog

log = structlog.get_logger()


class RateCalculator:
    """
    Converts cumulative counters into per-second rates.

    Keeps the last (value, timestamp) pair per key. The first observation of
    a key, a counter that went backwards (PID reuse, interface reset) and a
    zero-length interval all yield 0.0 instead of a bogus rate.
    """

    def __init__(self) -> None:
        self._state: dict[Hashable, tuple[float, float]] = {}

    def __len__(self) -> int:
        return len(self._state)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._state

    def derive(
        self,
        key: Hashable,
        raw_value: float,
        now: float,
        divisor: float = 1.0,
    ) -> float:
        """
        Return the rate of change of ``raw_value`` since the last call for ``key``.

        Args:
            key: Stable identity of the counter (PID, interface name, ...).
            raw_value: Current cumulative counter value.
            now: Monotonic timestamp in seconds.
            divisor: Extra scaling applied to the rate (e.g. ticks/s x cores).

        Returns:
            ``(raw_value - last) / elapsed / divisor``, or 0.0 when there is
            no usable baseline.
        """
        previous = self._state.get(key)
        if previous is None:
            self._state[key] = (raw_value, now)
            return 0.0

        last_value, last_time = previous
        if raw_value < last_value:
            log.debug("counter_regression", key=key, previous=last_value, current=raw_value)
            self._state[key] = (raw_value, now)
            return 0.0

        elapsed = now - last_time
        if elapsed <= 0:
            # Keep the old baseline so the next sample measures the full interval
            return 0.0

        self._state[key] = (raw_value, now)
        if divisor <= 0:
            return 0.0
        return (raw_value - last_value) / elapsed / divisor

    def prune(self, active_keys: Iterable[Hashable]) -> int:
        """Drop state for every key not in ``active_keys``. Returns the number dropped."""
        active = set(active_keys)
        stale = [key for key in self._state if key not in active]
        for key in stale:
            del self._state[key]
        return len(stale)

    def forget(self, key: Hashable) -> None:
        """Drop the baseline for a single key."""
        self._state.pop(key, None)
