"""System-wide CPU utilization from cumulative tick counters."""

from hostmon.models import CpuTimes


class CpuUsageMeter:
    """
    Tracks /proc/stat-style tick counters between samples.

    Usage is the busy share of the total tick delta, so it does not depend
    on wall-clock time or the number of cores.
    """

    def __init__(self) -> None:
        self._last: CpuTimes | None = None
        self._percent = 0.0

    @property
    def percent(self) -> float:
        """Most recently computed usage."""
        return self._percent

    def update(self, times: CpuTimes | None) -> float:
        """Feed a new sample and return CPU usage in percent (0-100)."""
        if times is None:
            return self._percent

        last = self._last
        if last is None or times.total < last.total or times.idle_total < last.idle_total:
            self._last = times
            self._percent = 0.0
            return 0.0

        total_diff = times.total - last.total
        if total_diff <= 0:
            return self._percent

        idle_diff = times.idle_total - last.idle_total
        self._last = times
        self._percent = max(0.0, min(100.0, (total_diff - idle_diff) * 100.0 / total_diff))
        return self._percent
